"""
Phase catalog — phase library, labels and service-type phase sets.

The tracker never hard-codes a label; it asks the catalog.  The catalog
is built once per app from the built-in library, with two optional
config overrides:

    PHASE_LABELS   {"DSGN": "Concept Design", ...}
                   relabels known keys; unknown keys are appended to the
                   library in the given order.
    SERVICE_TYPES  {"GD": ["ONB", "IDEA", "DSGN"], ...} or
                   {"GD": {"display_name": ..., "phase_keys": [...]}, ...}
                   replaces the built-in service types.

Phase-set resolution for a project: the union of its service types'
phases plus the always-on phases (ONB, PAY, SIGN, LAUNCH), ordered by
library position.  No service types means the default sequence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable

from flask import current_app

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseDefinition:
    """One entry of the phase library."""
    key: str
    label: str
    description: str = ""
    requires_approval: bool = False

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "description": self.description,
            "requires_approval": self.requires_approval,
        }


@dataclass(frozen=True)
class ServiceType:
    """A sellable service and the phases it brings into a project."""
    code: str
    display_name: str
    phase_keys: tuple[str, ...]
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "display_name": self.display_name,
            "description": self.description,
            "phase_keys": list(self.phase_keys),
        }


# ── Built-in library (library order == phase order in a project) ─────────────

PHASE_LIBRARY: tuple[PhaseDefinition, ...] = (
    PhaseDefinition("ONB", "Onboarding", "Kick-off and intake forms", True),
    PhaseDefinition("COLLAB", "Collaboration", "Light collaboration and brainstorming"),
    PhaseDefinition("IDEA", "Ideation", "Ideation and mood board creation"),
    PhaseDefinition("RESEARCH", "Research", "Brand and market research"),
    PhaseDefinition("DISC", "Discovery", "Discovery workshop and requirements"),
    PhaseDefinition("DSGN", "Design", "Design production phase", True),
    PhaseDefinition("CAD", "3D/CAD", "3D modeling and CAD work"),
    PhaseDefinition("PREP", "Pre-Press", "Pre-press preparation and proofing", True),
    PhaseDefinition("DEV", "Development", "Development and coding"),
    PhaseDefinition("MVP", "MVP", "Minimum viable product development"),
    PhaseDefinition("QA", "QA Testing", "Quality assurance and testing"),
    PhaseDefinition("FAB", "Fabrication", "Physical fabrication and building"),
    PhaseDefinition("FINISH", "Finishing", "Finishing and final touches"),
    PhaseDefinition("REV", "Review", "Client review and feedback collection", True),
    PhaseDefinition("PRINT", "Printing", "Print runs and batch production"),
    PhaseDefinition("PROD", "Production", "Final production", True),
    PhaseDefinition("DEPLOY", "Deployment", "Production deployment"),
    PhaseDefinition("PAY", "Payment", "Final payment collection"),
    PhaseDefinition("SIGN", "Sign-off", "Final approvals and documentation", True),
    PhaseDefinition("LAUNCH", "Launch", "Project launch and asset delivery"),
)

DEFAULT_PHASE_KEYS: tuple[str, ...] = ("ONB", "IDEA", "DSGN", "REV", "PROD", "PAY", "SIGN", "LAUNCH")

# Present in every project regardless of service mix
ALWAYS_ON_PHASE_KEYS: tuple[str, ...] = ("ONB", "PAY", "SIGN", "LAUNCH")

SERVICE_TYPES: tuple[ServiceType, ...] = (
    ServiceType("COL", "Collaboration Only", ("ONB", "COLLAB"), "Light collaboration and brainstorming"),
    ServiceType("IDE", "Ideation Workshop", ("ONB", "IDEA"), "Creative ideation and concept development"),
    ServiceType("SP", "Screen Printing", ("ONB", "IDEA", "PREP", "PRINT", "LAUNCH"), "Custom screen printing"),
    ServiceType("LFP", "Large-Format Print", ("ONB", "PREP", "PRINT", "LAUNCH"), "Large format printing and signage"),
    ServiceType("GD", "Graphic Design", ("ONB", "IDEA", "DSGN", "REV", "PROD", "LAUNCH"), "Graphic design"),
    ServiceType("WW", "Woodworking", ("ONB", "IDEA", "CAD", "FAB", "FINISH", "LAUNCH"), "Custom woodworking"),
    ServiceType("SAAS", "SaaS Development", ("ONB", "DISC", "MVP", "QA", "DEPLOY", "LAUNCH"), "Software as a Service"),
    ServiceType("WEB", "Website Design", ("ONB", "DISC", "DSGN", "DEV", "REV", "DEPLOY", "LAUNCH"), "Website design"),
    ServiceType("BOOK", "Book Cover Design", ("ONB", "IDEA", "DSGN", "REV", "LAUNCH"), "Book cover and layout"),
    ServiceType("LOGO", "Logo & Brand System", ("ONB", "RESEARCH", "DSGN", "REV", "LAUNCH"), "Logo and brand identity"),
    ServiceType("PY", "Python Automation", ("ONB", "DISC", "DEV", "QA", "LAUNCH"), "Automation and scripting"),
)


@dataclass
class PhaseCatalog:
    """Lookup table for phase definitions and service types."""
    phases: list[PhaseDefinition] = field(default_factory=lambda: list(PHASE_LIBRARY))
    service_types: dict[str, ServiceType] = field(
        default_factory=lambda: {s.code: s for s in SERVICE_TYPES}
    )
    default_keys: tuple[str, ...] = DEFAULT_PHASE_KEYS

    def __post_init__(self):
        self._by_key = {p.key: p for p in self.phases}
        self._order = {p.key: i for i, p in enumerate(self.phases)}

    # ── Construction ─────────────────────────────────────────────────────

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "PhaseCatalog":
        """Build a catalog applying PHASE_LABELS / SERVICE_TYPES overrides."""
        phases = list(PHASE_LIBRARY)
        label_overrides = config.get("PHASE_LABELS") or {}
        if label_overrides:
            known = {p.key for p in phases}
            phases = [
                replace(p, label=label_overrides[p.key]) if p.key in label_overrides else p
                for p in phases
            ]
            for key, label in label_overrides.items():
                if key not in known:
                    phases.append(PhaseDefinition(key, label))

        service_types = {s.code: s for s in SERVICE_TYPES}
        raw_services = config.get("SERVICE_TYPES")
        if raw_services:
            service_types = {
                code: _coerce_service_type(code, entry) for code, entry in raw_services.items()
            }

        catalog = cls(phases=phases, service_types=service_types)
        unknown = {
            key for s in catalog.service_types.values() for key in s.phase_keys
            if not catalog.has_phase(key)
        }
        if unknown:
            raise ValueError(f"SERVICE_TYPES reference unknown phase keys: {sorted(unknown)}")
        return catalog

    # ── Lookups ──────────────────────────────────────────────────────────

    def has_phase(self, key: str) -> bool:
        return key in self._by_key

    def definition(self, key: str) -> PhaseDefinition:
        try:
            return self._by_key[key]
        except KeyError:
            raise ValidationError(f"Unknown phase key: {key}", details={"key": key}) from None

    def label(self, key: str) -> str:
        """Display label for *key*; unknown keys fall back to the key itself."""
        definition = self._by_key.get(key)
        return definition.label if definition else key

    def requires_approval(self, key: str) -> bool:
        definition = self._by_key.get(key)
        return bool(definition and definition.requires_approval)

    def default_phases(self) -> list[PhaseDefinition]:
        return [self._by_key[k] for k in self.default_keys if k in self._by_key]

    def list_service_types(self) -> list[dict]:
        return [s.to_dict() for s in self.service_types.values()]

    # ── Resolution ───────────────────────────────────────────────────────

    def resolve_phase_keys(self, service_codes: Iterable[str] | None) -> list[str]:
        """Ordered phase keys for a project offering *service_codes*."""
        codes = [c for c in (service_codes or []) if c]
        if not codes:
            return [p.key for p in self.default_phases()]

        unknown = [c for c in codes if c not in self.service_types]
        if unknown:
            raise ValidationError(
                f"Unknown service type(s): {', '.join(unknown)}",
                details={"service_types": unknown},
            )

        keys = set(ALWAYS_ON_PHASE_KEYS)
        for code in codes:
            keys.update(self.service_types[code].phase_keys)
        return sorted((k for k in keys if k in self._order), key=self._order.__getitem__)


def _coerce_service_type(code: str, entry: Any) -> ServiceType:
    if isinstance(entry, dict):
        return ServiceType(
            code=code,
            display_name=entry.get("display_name", code),
            phase_keys=tuple(entry.get("phase_keys", ())),
            description=entry.get("description", ""),
        )
    return ServiceType(code=code, display_name=code, phase_keys=tuple(entry))


def init_phase_catalog(app) -> PhaseCatalog:
    """Build the catalog from app config and store it on the app."""
    catalog = PhaseCatalog.from_config(app.config)
    app.extensions["phase_catalog"] = catalog
    logger.debug("Phase catalog ready: %d phases, %d service types",
                 len(catalog.phases), len(catalog.service_types))
    return catalog


def get_catalog() -> PhaseCatalog:
    """Catalog of the current app (built lazily if the factory did not)."""
    catalog = current_app.extensions.get("phase_catalog")
    if catalog is None:
        catalog = init_phase_catalog(current_app)
    return catalog
