"""Fixed catalogue of item / report / contract categories."""

import enum


class Category(str, enum.Enum):
    BUILDING_INFRA = "建物インフラ"
    ROOMS_LIVING = "居室・生活"
    CARE_MEDICAL = "介護・医療"
    KITCHEN_MEALS = "厨房・食事"
    IT_SAFETY = "IT・安全"
    OTHER = "その他"

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls) -> list[str]:
        return [c.value for c in cls]
