from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

CJMMStep = Literal["recognizeCues", "analyzeCues", "prioritizeHypotheses",
                   "generateSolutions", "takeAction", "evaluateOutcomes"]
StressState = Literal["focused", "hesitant", "panic", "paralysis"]
SessionStatus = Literal["active", "completed", "abandoned"]
ScoringMethod = Literal["dichotomous", "polytomous", "linkage"]
AuditAction = Literal["click", "tabChange", "answerSelect", "answerDeselect", "submit",
                      "navigation", "highlight", "drag", "drop"]

STRESS_STATES: tuple[str, ...] = ("focused", "hesitant", "panic", "paralysis")
AUDIT_ACTIONS: tuple[str, ...] = ("click", "tabChange", "answerSelect", "answerDeselect", "submit",
                                  "navigation", "highlight", "drag", "drop")

# ---- clinical ----

@dataclass
class Patient:
    id: str; name: str
    age: int = 0
    sex: str = "Other"
    pronouns: str = ""
    code_status: str = "Full Code"
    allergies: List[str] = field(default_factory=list)
    weight_kg: float = 0.0
    height_cm: float = 0.0
    iso: str = "Standard"
    diagnosis: Optional[str] = None
    admission_date: Optional[str] = None
    precautions: Optional[str] = None

@dataclass
class VitalSign:
    time: str; hr: float; sbp: float; dbp: float; rr: float; temp: float; spo2: float
    pain: float = 0
    consciousness: str = "Alert"
    spo2_source: Optional[str] = None
    intensity: Optional[str] = None

@dataclass
class LabResult:
    name: str; value: float; unit: str; ref_low: float; ref_high: float
    timestamp: str = ""
    id: Optional[str] = None
    flag: Optional[str] = None

@dataclass
class ClinicalData:
    notes: List[Dict[str, Any]] = field(default_factory=list)
    vitals: List[VitalSign] = field(default_factory=list)
    labs: List[LabResult] = field(default_factory=list)
    physical_exam: List[Dict[str, Any]] = field(default_factory=list)
    orders: List[Dict[str, Any]] = field(default_factory=list)
    imaging: List[Dict[str, Any]] = field(default_factory=list)
    medications: List[Dict[str, Any]] = field(default_factory=list)
    pearl_annotations: List[Dict[str, Any]] = field(default_factory=list)

CLINICAL_LIST_FIELDS: tuple[str, ...] = (
    "notes", "vitals", "labs", "physical_exam", "orders", "imaging", "medications", "pearl_annotations",
)

# ---- pedagogy & scoring ----

@dataclass
class Pedagogy:
    cjmm_step: Optional[str] = None
    bloom_level: str = "apply"
    nclex_category: str = ""
    difficulty: int = 3
    topic_tags: List[str] = field(default_factory=list)

@dataclass
class Rationale:
    correct: str = ""
    incorrect: str = ""
    review_units: List[Dict[str, Any]] = field(default_factory=list)
    clinical_pearls: List[str] = field(default_factory=list)
    question_trap: Optional[Dict[str, Any]] = None
    mnemonic: Optional[Dict[str, Any]] = None
    answer_breakdown: List[Dict[str, Any]] = field(default_factory=list)

@dataclass
class ScoringRule:
    method: str = "dichotomous"
    max_points: Optional[float] = None
    partial_map: Optional[Dict[str, float]] = None

@dataclass
class ScoreResult:
    earned: float; max: float; ratio: float

# ---- items ----

@dataclass
class ItemBase:
    id: str
    type: str = ""
    stem: str = ""
    pedagogy: Optional[Pedagogy] = None
    rationale: Optional[Rationale] = None
    scoring: ScoringRule = field(default_factory=ScoringRule)
    status: Optional[str] = None

@dataclass
class HighlightItem(ItemBase):
    type: str = "highlight"
    passage: str = ""
    correct_span_indices: List[int] = field(default_factory=list)

@dataclass
class MultipleChoiceItem(ItemBase):
    type: str = "multipleChoice"
    options: List[Dict[str, Any]] = field(default_factory=list)
    correct_option_id: Optional[str] = None

@dataclass
class PriorityActionItem(MultipleChoiceItem):
    type: str = "priorityAction"

@dataclass
class TrendItem(MultipleChoiceItem):
    type: str = "trend"
    data_points: List[Dict[str, Any]] = field(default_factory=list)
    question: Optional[str] = None

@dataclass
class GraphicItem(MultipleChoiceItem):
    type: str = "graphic"
    image_url: str = ""

@dataclass
class AudioVideoItem(MultipleChoiceItem):
    type: str = "audioVideo"
    media_url: str = ""
    media_type: str = "audio"
    transcript: Optional[str] = None

@dataclass
class ChartExhibitItem(MultipleChoiceItem):
    type: str = "chartExhibit"
    exhibits: List[Dict[str, Any]] = field(default_factory=list)

@dataclass
class SelectAllItem(ItemBase):
    type: str = "selectAll"
    options: List[Dict[str, Any]] = field(default_factory=list)
    correct_option_ids: List[str] = field(default_factory=list)

@dataclass
class SelectNItem(SelectAllItem):
    type: str = "selectN"
    n: int = 0

@dataclass
class OrderedResponseItem(ItemBase):
    type: str = "orderedResponse"
    options: List[Dict[str, Any]] = field(default_factory=list)
    correct_order: List[str] = field(default_factory=list)

@dataclass
class MatrixMatchItem(ItemBase):
    type: str = "matrixMatch"
    rows: List[Dict[str, Any]] = field(default_factory=list)
    columns: List[Dict[str, Any]] = field(default_factory=list)
    correct_matches: Dict[str, str] = field(default_factory=dict)

@dataclass
class ClozeDropdownItem(ItemBase):
    type: str = "clozeDropdown"
    template: str = ""
    blanks: List[Dict[str, Any]] = field(default_factory=list)  # {id, options, correct_option}

@dataclass
class DragAndDropClozeItem(ItemBase):
    type: str = "dragAndDropCloze"
    template: str = ""
    options: List[str] = field(default_factory=list)
    blanks: List[Dict[str, Any]] = field(default_factory=list)  # {id, correct_option}

@dataclass
class BowtieItem(ItemBase):
    type: str = "bowtie"
    actions: List[Dict[str, Any]] = field(default_factory=list)
    potential_conditions: List[str] = field(default_factory=list)
    condition: str = ""
    parameters: List[Dict[str, Any]] = field(default_factory=list)
    correct_action_ids: List[str] = field(default_factory=list)
    correct_parameter_ids: List[str] = field(default_factory=list)

@dataclass
class HotspotItem(ItemBase):
    type: str = "hotspot"
    image_url: str = ""
    hotspots: List[Dict[str, Any]] = field(default_factory=list)
    correct_hotspot_ids: List[str] = field(default_factory=list)

MasterItem = Union[
    HighlightItem, MultipleChoiceItem, SelectAllItem, SelectNItem, OrderedResponseItem,
    MatrixMatchItem, ClozeDropdownItem, DragAndDropClozeItem, BowtieItem, TrendItem,
    PriorityActionItem, HotspotItem, GraphicItem, AudioVideoItem, ChartExhibitItem,
]

ITEM_CLASSES: Dict[str, type] = {
    "highlight": HighlightItem,
    "multipleChoice": MultipleChoiceItem,
    "selectAll": SelectAllItem,
    "selectN": SelectNItem,
    "orderedResponse": OrderedResponseItem,
    "matrixMatch": MatrixMatchItem,
    "clozeDropdown": ClozeDropdownItem,
    "dragAndDropCloze": DragAndDropClozeItem,
    "bowtie": BowtieItem,
    "trend": TrendItem,
    "priorityAction": PriorityActionItem,
    "hotspot": HotspotItem,
    "graphic": GraphicItem,
    "audioVideo": AudioVideoItem,
    "chartExhibit": ChartExhibitItem,
}

DICHOTOMOUS_TYPES: tuple[str, ...] = (
    "multipleChoice", "priorityAction", "trend", "graphic", "audioVideo", "chartExhibit",
)

# fields that reveal the key; stripped before an item is shown to a learner
ANSWER_KEY_FIELDS: tuple[str, ...] = (
    "correct_option_id", "correct_option_ids", "correct_order", "correct_matches",
    "condition", "correct_action_ids", "correct_parameter_ids", "correct_hotspot_ids",
    "correct_span_indices", "rationale",
)

# ---- case study & session ----

@dataclass
class CaseStudy:
    id: str; title: str
    patient: Optional[Patient] = None
    clinical_data: ClinicalData = field(default_factory=ClinicalData)
    items: List[ItemBase] = field(default_factory=list)
    time_limit: Optional[int] = None
    ehr_phases: Dict[int, ClinicalData] = field(default_factory=dict)

    def find_item(self, item_id: str) -> Optional[ItemBase]:
        return next((it for it in self.items if it.id == item_id), None)

@dataclass
class MedicationAdministration:
    med_id: str; timestamp: str; item_index: int
    rights_checked: List[str] = field(default_factory=list)
    administered_by: str = ""

@dataclass
class AuditEntry:
    timestamp: str; action: str; target: str; session_id: str
    item_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

@dataclass
class SessionState:
    id: str
    case_study: CaseStudy
    start_time: str
    current_item_index: int = 0
    answers: Dict[str, Any] = field(default_factory=dict)
    scores: Dict[str, float] = field(default_factory=dict)
    end_time: Optional[str] = None
    status: str = "active"
    stress_state: str = "focused"
    cjmm_profile: Dict[str, float] = field(default_factory=dict)
    administered_meds: Dict[str, MedicationAdministration] = field(default_factory=dict)
    active_clinical_data: ClinicalData = field(default_factory=ClinicalData)
