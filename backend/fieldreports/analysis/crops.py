"""Crop reference data: season lengths, yield benchmarks, fertilizer rates, prompt instructions."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class CropType(str, Enum):
    """Crops with their own reference data. Anything else is OTHER."""
    MAIZE = "maize"
    WHEAT = "wheat"
    BARLEY = "barley"
    SOYBEAN = "soybean"
    COTTON = "cotton"
    TOBACCO = "tobacco"
    GROUNDNUT = "groundnut"
    SUNFLOWER = "sunflower"
    SORGHUM = "sorghum"
    OTHER = "other"

    @classmethod
    def parse(cls, name: Optional[str]) -> "CropType":
        if not name:
            return cls.OTHER
        try:
            return cls(name.strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class CropProfile:
    """Reference data for one crop."""

    season_days: int = 120
    average_yield: float = 1.0  # tons/ha, Zimbabwe smallholder average
    good_yield: float = 2.0  # tons/ha, well-managed
    # Recommended rates in kg/ha, keyed by standardized fertilizer name
    basal_rates: Dict[str, float] = field(default_factory=lambda: {"Compound D": 200})
    top_rates: Dict[str, float] = field(default_factory=lambda: {"Ammonium Nitrate": 100})
    # (days since planting upper bound, stage) pairs; the last stage is open-ended
    stages: Tuple[Tuple[int, str], ...] = ()
    instructions: Optional[str] = None  # None selects the generic instructions


GENERIC_INSTRUCTIONS = """Crop-specific focus ({crop}):
- Assess whether current management suits {crop} at this growth stage
- Identify the main pest, disease and weed threats for {crop} in this region
- Give fertilizer and crop-protection advice specific to {crop}"""

WHEAT_INSTRUCTIONS = """Crop-specific focus (wheat, winter irrigated crop):
- Evaluate tillering and head development against the planting date
- Assess nitrogen top-dressing timing (tillering and flag-leaf stages)
- Flag rust (leaf, stem) and aphid risk under current conditions
- Comment on irrigation scheduling at critical stages: crown root initiation, booting, grain fill
- Note frost risk at heading and bird damage near harvest"""

BARLEY_INSTRUCTIONS = """Crop-specific focus (barley, malting quality):
- Evaluate tiller counts and head emergence against the planting date
- Keep nitrogen moderate; excess nitrogen raises grain protein above malting specification
- Flag net blotch, scald and aphid risk under current conditions
- Comment on irrigation at booting and grain fill, and lodging risk
- Note harvest timing to protect germination and grain colour"""


CROP_PROFILES: Dict[CropType, CropProfile] = {
    CropType.MAIZE: CropProfile(
        season_days=120,
        average_yield=0.8,
        good_yield=4.0,
        basal_rates={"Compound D": 200, "NPK 7:14:7": 250, "Compound C": 250},
        top_rates={"Ammonium Nitrate": 150, "Urea": 100},
        stages=(
            (15, "Early vegetative (emergence to V3)"),
            (40, "Vegetative (V4 to V8)"),
            (70, "Late vegetative to tasseling (V9 to VT)"),
            (100, "Reproductive (silking to milk)"),
            (130, "Maturing (dough to dent)"),
            (0, "Physiological maturity"),
        ),
    ),
    CropType.WHEAT: CropProfile(
        season_days=100,
        average_yield=4.5,
        good_yield=6.0,
        basal_rates={"Compound D": 350, "Compound C": 300},
        top_rates={"Ammonium Nitrate": 200, "Urea": 150},
        stages=(
            (20, "Seedling growth"),
            (45, "Tillering"),
            (70, "Stem extension"),
            (85, "Heading and flowering"),
            (120, "Grain filling"),
            (0, "Ripening and maturity"),
        ),
        instructions=WHEAT_INSTRUCTIONS,
    ),
    CropType.BARLEY: CropProfile(
        season_days=100,
        average_yield=3.5,
        good_yield=5.0,
        basal_rates={"Compound D": 300},
        top_rates={"Ammonium Nitrate": 120},
        stages=(
            (20, "Seedling growth"),
            (45, "Tillering"),
            (65, "Stem extension"),
            (80, "Heading"),
            (110, "Grain filling"),
            (0, "Ripening and maturity"),
        ),
        instructions=BARLEY_INSTRUCTIONS,
    ),
    CropType.SOYBEAN: CropProfile(
        season_days=110,
        average_yield=1.8,
        good_yield=2.5,
        basal_rates={"Compound L": 250, "Compound D": 200},
        top_rates={},
        stages=(
            (15, "Emergence and seedling (VE-VC)"),
            (45, "Vegetative (V1-V5)"),
            (75, "Flowering and pod development (R1-R3)"),
            (100, "Pod filling (R4-R5)"),
            (120, "Seed maturation (R6-R7)"),
            (0, "Harvest maturity (R8)"),
        ),
    ),
    CropType.COTTON: CropProfile(
        season_days=160,
        average_yield=0.6,
        good_yield=1.2,
        basal_rates={"Compound L": 250, "Compound D": 200},
        top_rates={"Ammonium Nitrate": 100, "Urea": 75},
        stages=(
            (25, "Emergence and seedling establishment"),
            (60, "Vegetative growth"),
            (90, "Squaring and early bloom"),
            (120, "Flowering and boll development"),
            (160, "Boll opening and maturation"),
            (0, "Harvest"),
        ),
    ),
    CropType.TOBACCO: CropProfile(
        season_days=150,
        average_yield=1.5,
        good_yield=3.0,
        basal_rates={"Compound C": 300, "Compound L": 400},
        top_rates={"Ammonium Nitrate": 150, "Compound S": 200},
    ),
    CropType.GROUNDNUT: CropProfile(season_days=130, average_yield=0.7, good_yield=1.2),
    CropType.SUNFLOWER: CropProfile(season_days=100, average_yield=0.5, good_yield=0.8),
    CropType.SORGHUM: CropProfile(season_days=120, average_yield=0.7, good_yield=1.5),
    CropType.OTHER: CropProfile(),
}


# Shorthand used on field forms
FERTILIZER_ALIASES = {
    "a": "Compound A",
    "compound a": "Compound A",
    "c": "Compound C",
    "compound c": "Compound C",
    "d": "Compound D",
    "compound d": "Compound D",
    "j": "Compound J",
    "compound j": "Compound J",
    "l": "Compound L",
    "compound l": "Compound L",
    "s": "Compound S",
    "compound s": "Compound S",
    "an": "Ammonium Nitrate",
    "ammonium nitrate": "Ammonium Nitrate",
    "urea": "Urea",
}


def get_profile(crop_type: Optional[str]) -> CropProfile:
    """Reference data for a crop name; unknown crops get the OTHER profile."""
    return CROP_PROFILES.get(CropType.parse(crop_type), CROP_PROFILES[CropType.OTHER])


def crop_instructions(crop_type: Optional[str]) -> str:
    """Prompt instruction block for a crop."""
    profile = get_profile(crop_type)
    if profile.instructions:
        return profile.instructions
    crop = (crop_type or "the crop").strip().lower() or "the crop"
    return GENERIC_INSTRUCTIONS.format(crop=crop)


def estimate_growth_stage(crop_type: Optional[str], days_since_planting: int) -> str:
    """Growth stage expected for a crop after the given number of days."""
    profile = get_profile(crop_type)
    if profile.stages:
        for limit, stage in profile.stages:
            if limit == 0 or days_since_planting < limit:
                return stage

    percent = days_since_planting / profile.season_days * 100
    if percent < 20:
        return "Early vegetative"
    elif percent < 40:
        return "Vegetative"
    elif percent < 60:
        return "Reproductive"
    elif percent < 80:
        return "Grain filling"
    elif percent < 95:
        return "Maturity"
    return "Harvest ready"


def standardize_fertilizer(name: Optional[str]) -> Optional[str]:
    if not name or not name.strip():
        return None
    return FERTILIZER_ALIASES.get(name.strip().lower(), name.strip())


def _adequacy(amount: Optional[float], recommended: Optional[float]) -> str:
    if not amount or not recommended:
        return "Unknown"
    if amount >= recommended * 0.9:
        return "Adequate"
    elif amount >= recommended * 0.6:
        return "Somewhat inadequate"
    return "Inadequate"


def fertilizer_adequacy(record: Dict) -> Dict[str, object]:
    """Compare applied basal and top-dressing rates with the crop's recommendations."""
    profile = get_profile(record.get("crop_type"))
    basal = standardize_fertilizer(record.get("basal_fertilizer"))
    top = standardize_fertilizer(record.get("top_dressing"))
    basal_amount = record.get("basal_fertilizer_amount") or 0
    top_amount = record.get("top_dressing_amount") or 0

    return {
        "basal_fertilizer": basal,
        "basal_amount": basal_amount,
        "basal_recommended": profile.basal_rates.get(basal) if basal else None,
        "basal_adequacy": _adequacy(basal_amount, profile.basal_rates.get(basal) if basal else None),
        "top_dressing": top,
        "top_amount": top_amount,
        "top_recommended": profile.top_rates.get(top) if top else None,
        "top_adequacy": _adequacy(top_amount, profile.top_rates.get(top) if top else None),
    }


def yield_comparison(record: Dict) -> Optional[Dict[str, object]]:
    """Last season's yield against the crop's average and good benchmarks."""
    last_yield = record.get("last_yield")
    if not last_yield:
        return None

    field_size = record.get("field_size") or 1
    unit = (record.get("last_yield_unit") or "").lower()
    if "kg" in unit:
        tons_per_ha = last_yield / 1000
    elif "bag" in unit:
        tons_per_ha = last_yield * 50 / 1000  # 50 kg bags
    elif "ton" in unit or "t/ha" in unit:
        tons_per_ha = last_yield
    else:
        # No unit: total tons for the field
        tons_per_ha = last_yield / field_size

    profile = get_profile(record.get("crop_type"))
    vs_average = tons_per_ha / profile.average_yield

    if vs_average >= 1.2:
        performance = "Above average"
    elif vs_average >= 0.8:
        performance = "Average"
    else:
        performance = "Below average"

    return {
        "tons_per_ha": round(tons_per_ha, 2),
        "average_yield": profile.average_yield,
        "good_yield": profile.good_yield,
        "vs_average": round(vs_average, 2),
        "vs_good": round(tons_per_ha / profile.good_yield, 2),
        "performance": performance,
    }


def farming_region(latitude: Optional[float], longitude: Optional[float]) -> Dict[str, str]:
    """Approximate Zimbabwe natural farming region from coordinates."""
    if latitude is None or longitude is None:
        return {
            "region": "Unknown region",
            "description": "region not determined due to missing coordinates",
        }

    if longitude > 32.0 and latitude < -18.5:
        return {
            "region": "Natural Region I",
            "description": "specialized and diversified farming, over 1000 mm annual rainfall",
        }
    elif longitude > 30.5 and latitude < -17.0:
        return {
            "region": "Natural Region II",
            "description": "intensive farming, 750-1000 mm annual rainfall",
        }
    elif longitude > 29.0 and latitude < -19.0:
        return {
            "region": "Natural Region III",
            "description": "semi-intensive farming, 650-800 mm annual rainfall",
        }
    elif longitude < 29.0 or latitude > -17.0:
        return {
            "region": "Natural Region IV",
            "description": "semi-extensive farming, 450-650 mm annual rainfall",
        }
    return {
        "region": "Natural Region V",
        "description": "extensive farming, under 450 mm annual rainfall",
    }
