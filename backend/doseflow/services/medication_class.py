from __future__ import annotations

CRITICAL_KEYWORDS = (
    "insulin", "metformin", "lisinopril", "atorvastatin", "metoprolol", "warfarin",
    "digoxin", "levothyroxine", "prednisone", "amlodipine", "losartan", "carvedilol",
    "enalapril", "furosemide", "spironolactone", "diltiazem", "verapamil",
    "propranolol", "atenolol", "bisoprolol",
)

VITAMIN_KEYWORDS = (
    "vitamin", "supplement", "calcium", "iron", "magnesium", "zinc", "multivitamin",
    "omega", "fish oil", "coq10", "biotin", "folic acid", "b12", "b6", "thiamine",
    "riboflavin", "niacin", "pantothenic",
)

MEDICATION_CLASSES = ("critical", "standard", "vitamin", "prn")


def classify_medication(name: str, generic_name: str | None = None, is_prn: bool = False) -> str:
    """Keyword-based class for a medication name; PRN always wins."""
    if is_prn:
        return "prn"
    text = f"{name or ''} {generic_name or ''}".lower()
    if any(keyword in text for keyword in CRITICAL_KEYWORDS):
        return "critical"
    if any(keyword in text for keyword in VITAMIN_KEYWORDS):
        return "vitamin"
    return "standard"
