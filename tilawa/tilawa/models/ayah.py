"""
Ayah (verse) data model.
"""
from pydantic import BaseModel, Field


class Ayah(BaseModel):
    """
    Represents a single ayah (verse) from the Quran.

    Attributes:
        surah_id: Surah number (1-114)
        number: Ayah number within the surah (1-based)
        text: The Arabic text of the ayah
        translation: Translation shown under the Arabic text
    """

    surah_id: int = Field(
        ...,
        description="Surah number (1-114)",
        ge=1,
        le=114,
    )
    number: int = Field(
        ...,
        description="Ayah number within the surah (1-based)",
        ge=1,
    )
    text: str = Field(
        default="",
        description="The Arabic text of the ayah",
    )
    translation: str = Field(
        default="",
        description="Translation of the ayah",
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "surah_id": 1,
                    "number": 1,
                    "text": "بِسْمِ اللَّهِ الرَّحْمَٰنِ الرَّحِيمِ",
                    "translation": "In the name of Allah, the Entirely Merciful, the Especially Merciful.",
                }
            ]
        },
    }

    def __str__(self) -> str:
        return f"Ayah({self.surah_id}:{self.number})"
