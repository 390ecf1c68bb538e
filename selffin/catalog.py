# selffin/catalog.py
"""
Renovation task master data.

Durations are working days for a 10-pyeong reference area and are scaled by
`adjust_duration_by_area`. Dependency delays are curing/drying waits in hours
that must elapse after every predecessor finishes.
"""

import math
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

BASE_AREA = 10  # pyeong


class TaskTemplate(BaseModel):
    id: str
    name: str
    category: str
    base_duration: float
    dependencies: List[str] = Field(default_factory=list)
    dependency_delay_hours: float = 0
    noise_level: str = "none"
    dust_level: str = "none"
    specialists: List[str] = Field(default_factory=list)
    diy_possible: bool = False
    weather_sensitive: bool = False
    optional: bool = False  # skipped for partial-scope spaces
    tips: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


SPACE_NAMES = {
    "kitchen": "Kitchen",
    "bathroom": "Bathroom",
    "living_room": "Living room",
    "bedroom": "Bedroom",
}

_KITCHEN = [
    TaskTemplate(
        id="demolition", name="Demolition", category="demolition",
        base_duration=2, noise_level="high", dust_level="high",
        specialists=["demolition"],
        tips=["Check for leaks under the old sink", "Shut off gas and water first"],
        warnings=["Watch for asbestos-containing materials", "Notify neighbours about noise"],
    ),
    TaskTemplate(
        id="plumbing_rough", name="Rough plumbing", category="plumbing",
        base_duration=2, dependencies=["demolition"],
        noise_level="medium", dust_level="medium", specialists=["plumber"],
        tips=["Label hot and cold lines", "Plan the dishwasher supply early"],
        warnings=["Licensed plumber only", "Pressure test before closing walls"],
    ),
    TaskTemplate(
        id="electrical_rough", name="Rough electrical", category="electrical",
        base_duration=2, dependencies=["demolition"],
        noise_level="medium", dust_level="low", specialists=["electrician"],
        tips=["Dedicated outlets for each appliance", "Fix switch positions up front"],
        warnings=["Licensed electrician only", "Install overload breakers"],
    ),
    TaskTemplate(
        id="ceiling", name="Ceiling", category="carpentry",
        base_duration=1, dependencies=["plumbing_rough", "electrical_rough"],
        noise_level="medium", dust_level="medium", specialists=["carpenter"], optional=True,
        tips=["Confirm vent positions", "Mark recessed light cut-outs"],
        warnings=["Treat drywall joints against cracking"],
    ),
    TaskTemplate(
        id="wall", name="Walls", category="carpentry",
        base_duration=1, dependencies=["plumbing_rough", "electrical_rough"],
        noise_level="medium", dust_level="medium", specialists=["carpenter"],
        tips=["Check outlet box positions", "Flatten walls that will be tiled"],
        warnings=["Confirm insulation is filled"],
    ),
    TaskTemplate(
        id="waterproofing", name="Waterproofing", category="waterproofing",
        base_duration=1, dependencies=["wall"], dependency_delay_hours=24,
        dust_level="low", specialists=["waterproofing"], weather_sensitive=True,
        tips=["Concentrate on the area under the sink", "Three coats recommended"],
        warnings=["No work above 70% humidity", "48 hours drying time"],
    ),
    TaskTemplate(
        id="tiling", name="Tiling", category="tiling",
        base_duration=2, dependencies=["waterproofing"], dependency_delay_hours=48,
        noise_level="medium", dust_level="medium", specialists=["tiler"],
        tips=["Plan the tile pattern", "Choose grout colour carefully"],
        warnings=["Tile only on fully cured waterproofing", "Check level and plumb"],
    ),
    TaskTemplate(
        id="cabinet", name="Cabinets", category="installation",
        base_duration=2, dependencies=["tiling"],
        noise_level="medium", dust_level="low", specialists=["furniture installer"],
        tips=["Level precisely", "Keep door gaps even"],
        warnings=["Check wall load capacity", "Anchor upper cabinets"],
    ),
    TaskTemplate(
        id="countertop", name="Countertop", category="installation",
        base_duration=1, dependencies=["cabinet"],
        noise_level="low", dust_level="low", specialists=["stone fabricator"],
        tips=["Verify the sink cut-out", "Fit tight to the wall"],
        warnings=["Finish seams carefully", "Two people for heavy slabs"],
    ),
    TaskTemplate(
        id="sink", name="Sink and faucet", category="plumbing",
        base_duration=0.5, dependencies=["countertop"],
        noise_level="low", specialists=["plumber"], diy_possible=True,
        tips=["Clean silicone finish", "Pick a usable faucet height"],
        warnings=["Leak test", "Check drain slope"],
    ),
    TaskTemplate(
        id="appliances", name="Appliances", category="installation",
        base_duration=1, dependencies=["sink"],
        noise_level="low", specialists=["appliance installer"], diy_possible=True,
        optional=True,
        tips=["Confirm the gas connection", "Check built-in dimensions"],
        warnings=["Gas hookups by licensed fitters only", "Verify grounding"],
    ),
    TaskTemplate(
        id="finishing", name="Final cleaning", category="cleaning",
        base_duration=0.5, dependencies=["appliances"], diy_possible=True,
        tips=["Remove protective film", "Test every function"],
        warnings=["Do not touch uncured silicone"],
    ),
]

_BATHROOM = [
    TaskTemplate(
        id="demolition", name="Demolition", category="demolition",
        base_duration=1, noise_level="high", dust_level="high", specialists=["demolition"],
        tips=["Protect the existing waterproof layer", "Plug the floor drain"],
        warnings=["Watch for asbestos tiles", "Prevent leaks to the floor below"],
    ),
    TaskTemplate(
        id="plumbing_rough", name="Rough plumbing", category="plumbing",
        base_duration=1, dependencies=["demolition"],
        noise_level="medium", dust_level="medium", specialists=["plumber"],
        tips=["Label hot and cold lines", "Run a pressure test"],
        warnings=["Licensed plumber only", "Check drain slopes"],
    ),
    TaskTemplate(
        id="electrical_rough", name="Rough electrical", category="electrical",
        base_duration=0.5, dependencies=["demolition"],
        noise_level="low", dust_level="low", specialists=["electrician"],
        tips=["Use splash-proof outlets", "Dedicated line for the fan"],
        warnings=["GFCI breaker required", "Verify grounding"],
    ),
    TaskTemplate(
        id="waterproofing", name="Waterproofing", category="waterproofing",
        base_duration=2, dependencies=["plumbing_rough", "electrical_rough"],
        dependency_delay_hours=24, dust_level="low", specialists=["waterproofing"],
        weather_sensitive=True,
        tips=["Run the membrane 30cm up the walls", "Reinforce corners"],
        warnings=["At least three coats", "48 hours full drying"],
    ),
    TaskTemplate(
        id="waterproofing_inspection", name="Flood test", category="waterproofing",
        base_duration=1, dependencies=["waterproofing"], dependency_delay_hours=48,
        specialists=["waterproofing"],
        tips=["Hold water for 24 hours", "Inspect for any leak"],
        warnings=["Redo the membrane on any leak", "Check the unit below"],
    ),
    TaskTemplate(
        id="tiling", name="Tiling", category="tiling",
        base_duration=2, dependencies=["waterproofing_inspection"],
        noise_level="medium", dust_level="medium", specialists=["tiler"],
        tips=["Check floor slope to the drain", "Seal the grout"],
        warnings=["Use anti-slip floor tiles", "Check for hollow tiles"],
    ),
    TaskTemplate(
        id="ceiling", name="Ceiling", category="carpentry",
        base_duration=0.5, dependencies=["tiling"],
        noise_level="low", dust_level="low", specialists=["carpenter"], optional=True,
        tips=["Confirm the vent position", "Use moisture-resistant boards"],
        warnings=["Leave an access hatch", "Prevent condensation"],
    ),
    TaskTemplate(
        id="fixtures", name="Sanitary fixtures", category="plumbing",
        base_duration=1, dependencies=["tiling"],
        noise_level="low", specialists=["plumber"],
        tips=["Clean silicone finish", "Check level"],
        warnings=["Leak test", "Check fixing bolts"],
    ),
    TaskTemplate(
        id="vanity", name="Vanity and storage", category="installation",
        base_duration=0.5, dependencies=["fixtures"],
        noise_level="low", specialists=["furniture installer"], diy_possible=True,
        tips=["Fix firmly to the wall", "Adjust the doors"],
        warnings=["Check load capacity", "Check the drain connection"],
    ),
    TaskTemplate(
        id="finishing", name="Final cleaning", category="cleaning",
        base_duration=0.5, dependencies=["vanity"], diy_possible=True,
        tips=["Remove silicone residue", "Test drainage"],
        warnings=["Protect fresh grout"],
    ),
]

_LIVING_ROOM = [
    TaskTemplate(
        id="demolition", name="Demolition", category="demolition",
        base_duration=1, noise_level="high", dust_level="high", specialists=["demolition"],
        tips=["Decide whether to keep the old moulding", "Strip wallpaper cleanly"],
        warnings=["Noise complaints", "Install dust barriers"],
    ),
    TaskTemplate(
        id="electrical", name="Electrical", category="electrical",
        base_duration=1, dependencies=["demolition"],
        noise_level="medium", dust_level="low", specialists=["electrician"],
        tips=["Hide TV wall wiring", "Consider dimmer switches"],
        warnings=["Licensed electrician only", "Check circuit capacity"],
    ),
    TaskTemplate(
        id="ceiling", name="Ceiling", category="carpentry",
        base_duration=1, dependencies=["electrical"],
        noise_level="medium", dust_level="medium", specialists=["carpenter"], optional=True,
        tips=["Consider a coffered ceiling", "Plan indirect lighting lines"],
        warnings=["Check level", "Treat against cracking"],
    ),
    TaskTemplate(
        id="wall_prep", name="Wall preparation", category="carpentry",
        base_duration=1, dependencies=["electrical"],
        noise_level="low", dust_level="medium", specialists=["wallpaper"], diy_possible=True,
        tips=["Careful putty work", "Apply primer"],
        warnings=["Check flatness", "Repair cracks"],
    ),
    TaskTemplate(
        id="flooring", name="Flooring", category="carpentry",
        base_duration=2, dependencies=["ceiling", "wall_prep"],
        noise_level="medium", dust_level="medium", specialists=["flooring"],
        weather_sensitive=True,
        tips=["Keep a consistent direction", "Leave a 10mm gap at walls"],
        warnings=["Check floor flatness", "Control humidity"],
    ),
    TaskTemplate(
        id="painting", name="Painting and wallpaper", category="painting",
        base_duration=2, dependencies=["flooring"],
        dust_level="low", specialists=["painter"], diy_possible=True, weather_sensitive=True,
        tips=["Use masking tape", "Two coats"],
        warnings=["Ventilate", "Allow drying time"],
    ),
    TaskTemplate(
        id="molding", name="Moulding", category="carpentry",
        base_duration=1, dependencies=["painting"],
        noise_level="low", dust_level="low", specialists=["carpenter"], diy_possible=True,
        optional=True,
        tips=["45 degree corner cuts", "Putty the joints"],
        warnings=["Check level", "Keep fixing intervals even"],
    ),
    TaskTemplate(
        id="finishing", name="Final cleaning", category="cleaning",
        base_duration=0.5, dependencies=["molding"], diy_possible=True,
        tips=["Wax the floor", "Fit switch and outlet covers"],
        warnings=["Avoid damaging fresh paint"],
    ),
]

_BEDROOM = [
    TaskTemplate(
        id="demolition", name="Demolition", category="demolition",
        base_duration=0.5, noise_level="medium", dust_level="medium",
        specialists=["demolition"], diy_possible=True,
        tips=["Avoid gouging walls when stripping wallpaper", "Protect existing furniture"],
        warnings=["Contain dust", "Respect quiet hours"],
    ),
    TaskTemplate(
        id="electrical", name="Electrical", category="electrical",
        base_duration=0.5, dependencies=["demolition"],
        noise_level="low", dust_level="low", specialists=["electrician"],
        tips=["Outlets on both sides of the bed", "Consider USB outlets"],
        warnings=["Licensed electrician only"],
    ),
    TaskTemplate(
        id="ceiling", name="Ceiling", category="carpentry",
        base_duration=0.5, dependencies=["electrical"],
        noise_level="medium", dust_level="medium", specialists=["carpenter"], optional=True,
        tips=["Centre the light fixture", "Add insulation"],
        warnings=["Treat drywall joints"],
    ),
    TaskTemplate(
        id="wall_prep", name="Wall preparation", category="carpentry",
        base_duration=0.5, dependencies=["electrical"],
        noise_level="low", dust_level="medium", specialists=["wallpaper"], diy_possible=True,
        tips=["Remove mould", "Apply primer"],
        warnings=["Check flatness"],
    ),
    TaskTemplate(
        id="flooring", name="Flooring", category="carpentry",
        base_duration=1, dependencies=["ceiling", "wall_prep"],
        noise_level="medium", dust_level="medium", specialists=["flooring"],
        weather_sensitive=True,
        tips=["Adjust threshold height", "Check floor heating"],
        warnings=["Check floor flatness", "Use sound-deadening underlay"],
    ),
    TaskTemplate(
        id="painting", name="Painting and wallpaper", category="painting",
        base_duration=1, dependencies=["flooring"],
        dust_level="low", specialists=["painter"], diy_possible=True, weather_sensitive=True,
        tips=["Use low-VOC paint", "Consider an accent wall"],
        warnings=["Ventilate", "Check VOC labels"],
    ),
    TaskTemplate(
        id="builtin", name="Built-in wardrobe", category="installation",
        base_duration=1, dependencies=["painting"],
        noise_level="medium", dust_level="low", specialists=["furniture installer"],
        optional=True,
        tips=["Check wall squareness", "Soft-close doors"],
        warnings=["Fix firmly to the wall", "Level the carcass"],
    ),
    TaskTemplate(
        id="finishing", name="Final cleaning", category="cleaning",
        base_duration=0.5, dependencies=["builtin"], diy_possible=True,
        tips=["Fit curtain rails", "Fit light covers"],
        warnings=["Avoid scratching the new floor"],
    ),
]

SPACE_TASK_TEMPLATES: Dict[str, List[TaskTemplate]] = {
    "kitchen": _KITCHEN,
    "bathroom": _BATHROOM,
    "living_room": _LIVING_ROOM,
    "bedroom": _BEDROOM,
}

# KRW per pyeong
TASK_COST_ESTIMATES: Dict[str, float] = {
    "demolition": 150000,
    "plumbing": 200000,
    "electrical": 180000,
    "waterproofing": 120000,
    "tiling": 250000,
    "carpentry": 300000,
    "painting": 100000,
    "installation": 150000,
    "cleaning": 50000,
}

CONCURRENT_WORK_RULES: Dict[str, List[str]] = {
    "demolition": [],
    "plumbing": ["electrical"],
    "electrical": ["plumbing"],
    "waterproofing": [],
    "tiling": [],
    "carpentry": ["painting"],
    "painting": ["carpentry"],
    "installation": ["cleaning"],
    "cleaning": ["installation"],
}

CATEGORY_COLORS: Dict[str, str] = {
    "demolition": "#ef4444",
    "electrical": "#f59e0b",
    "plumbing": "#3b82f6",
    "carpentry": "#8b5cf6",
    "painting": "#10b981",
    "flooring": "#f97316",
    "tiling": "#0ea5e9",
    "waterproofing": "#14b8a6",
    "installation": "#a855f7",
    "cleaning": "#6b7280",
}

DEFAULT_COLOR = "#6b7280"


def adjust_duration_by_area(base_duration: float, area: float) -> float:
    """Half a working day for every started 5 pyeong above the reference area."""
    additional = math.ceil((area - BASE_AREA) / 5) * 0.5
    return base_duration + max(0.0, additional)


def can_work_concurrently(category_a: str, category_b: str) -> bool:
    return category_b in CONCURRENT_WORK_RULES.get(category_a, [])


def category_color(category: Optional[str]) -> str:
    return CATEGORY_COLORS.get(category or "", DEFAULT_COLOR)
