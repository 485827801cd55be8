# quakeframe/materials.py
"""Material property table (structural steels, concretes, aluminium)."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class Material:
    """Isotropic material properties."""
    name: str                 # Display name (S235, C25/30, ...)
    density: float            # kg/m³
    elastic_modulus: float    # MPa
    yield_strength: float     # MPa
    ultimate_strength: float  # MPa
    poisson_ratio: float

    @property
    def E_pa(self) -> float:
        """Elastic modulus in Pa, the unit the stiffness kernel works in."""
        return self.elastic_modulus * 1e6


# Standard structural materials keyed the way element records refer to them
MATERIALS: Mapping[str, Material] = MappingProxyType({
    'steel_S235': Material(
        name='Steel S235', density=7850.0, elastic_modulus=210000.0,
        yield_strength=235.0, ultimate_strength=360.0, poisson_ratio=0.3,
    ),
    'steel_S355': Material(
        name='Steel S355', density=7850.0, elastic_modulus=210000.0,
        yield_strength=355.0, ultimate_strength=470.0, poisson_ratio=0.3,
    ),
    'concrete_C25': Material(
        name='Concrete C25', density=2400.0, elastic_modulus=30000.0,
        yield_strength=25.0, ultimate_strength=30.0, poisson_ratio=0.2,
    ),
    'concrete_C30': Material(
        name='Concrete C30', density=2400.0, elastic_modulus=33000.0,
        yield_strength=30.0, ultimate_strength=37.0, poisson_ratio=0.2,
    ),
    'aluminum_6061': Material(
        name='Aluminium 6061', density=2700.0, elastic_modulus=69000.0,
        yield_strength=240.0, ultimate_strength=310.0, poisson_ratio=0.33,
    ),
})
