from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class VocabularyEntry:
    """
    A word button on the board, as handed over by the vocabulary loader.
    The pictogram core only reads label, grammatical_type and pictogram_id.
    """
    id: str
    label: str
    category: str
    grammatical_type: str
    pictogram_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "VocabularyEntry":
        picto = data.get("pictogramId", data.get("pictogram_id"))
        return cls(
            id=str(data.get("id", data.get("label", ""))),
            label=str(data.get("label", "")),
            category=str(data.get("category", "")),
            grammatical_type=str(data.get("grammaticalType", data.get("grammatical_type", ""))),
            pictogram_id=int(picto) if picto is not None else None,
        )
