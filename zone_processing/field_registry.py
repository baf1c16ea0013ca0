#!/usr/bin/env python3
"""
Field Registry for the School Zone Explorer

This module provides field registration and explanation capabilities for school
zone layers. The attributes the aggregate engine treats specially are
registered up front; anything else is matched against common naming patterns
so a discovered schema can still be explained.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from loguru import logger

GRADE_PATTERN = re.compile(r"^Grade_(\d{1,2})$")


@dataclass
class FieldDefinition:
    """Definition of a dataset field with its explanation."""

    name: str
    description: str
    field_type: str  # 'count', 'ratio', 'identifier', 'categorical', 'measure'
    category: str  # 'demographic', 'enrollment', 'school', 'geographic', 'administrative'
    units: Optional[str] = None


class FieldRegistry:
    """
    Registry of known school zone attributes.
    Handles unfamiliar datasets by auto-detecting common field patterns.
    """

    def __init__(self, strict_mode: bool = False):
        self._fields: Dict[str, FieldDefinition] = {}
        self.strict_mode = strict_mode  # If True, fail on unknown fields; if False, warn
        self._register_base_fields()

    def register(self, field_def: FieldDefinition) -> None:
        """Register a field definition."""
        self._fields[field_def.name] = field_def
        logger.debug(f"Registered field: {field_def.name}")

    def __contains__(self, field_name: str) -> bool:
        return field_name in self._fields

    def get(self, field_name: str) -> Optional[FieldDefinition]:
        return self._fields.get(field_name)

    def auto_register_field_patterns(self, field_names: Iterable[str]) -> int:
        """
        Register fields that follow known naming patterns.

        Returns:
            Number of newly registered fields
        """
        auto_registered = 0

        for field_name in field_names:
            if field_name in self._fields:
                continue

            grade_match = GRADE_PATTERN.match(field_name)
            if grade_match:
                self.register(
                    FieldDefinition(
                        name=field_name,
                        description=f"Students enrolled in grade {int(grade_match.group(1))}",
                        field_type="count",
                        category="enrollment",
                        units="students",
                    )
                )
                auto_registered += 1

            elif field_name in ("Shape_Area", "Shape_Leng"):
                units = "square map units" if "Area" in field_name else "map units"
                self.register(
                    FieldDefinition(
                        name=field_name,
                        description=f"Zone polygon {field_name.split('_')[1].lower()}",
                        field_type="measure",
                        category="geographic",
                        units=units,
                    )
                )
                auto_registered += 1

            elif field_name.lower().endswith(("_pct", "_rate")):
                self.register(
                    FieldDefinition(
                        name=field_name,
                        description=f"Percentage field: {field_name}",
                        field_type="ratio",
                        category="demographic",
                        units="percent",
                    )
                )
                auto_registered += 1

            elif field_name.lower() in ("district", "district_name", "dist_name"):
                self.register(
                    FieldDefinition(
                        name=field_name,
                        description="School district name",
                        field_type="categorical",
                        category="administrative",
                    )
                )
                auto_registered += 1

        if auto_registered > 0:
            logger.debug(f"  ✅ Auto-registered {auto_registered} field patterns")
        return auto_registered

    def get_explanation(self, field_name: str) -> str:
        """Get a one-line explanation for a field."""
        field_def = self._fields.get(field_name)
        if field_def is None:
            if self.strict_mode:
                raise ValueError(f"Field {field_name} not found in registry")
            return ""

        explanation = field_def.description
        if field_def.units:
            explanation += f" ({field_def.units})"
        return explanation

    def _register_base_fields(self) -> None:
        """Register the attributes of the Texas elementary zone dataset."""
        base_fields = [
            FieldDefinition("Zip", "ZIP code of the school zone", "identifier", "administrative"),
            FieldDefinition("ZIP", "ZIP code of the school zone", "identifier", "administrative"),
            FieldDefinition("zipcode", "ZIP code of the school zone", "identifier", "administrative"),
            FieldDefinition("state", "State abbreviation", "categorical", "administrative"),
            FieldDefinition("Female", "Female students", "count", "demographic", "students"),
            FieldDefinition("Male", "Male students", "count", "demographic", "students"),
            FieldDefinition(
                "Ttl_Std", "Total students as reported by the source", "count", "demographic", "students"
            ),
            FieldDefinition("pop", "Resident population of the zone", "count", "demographic", "people"),
            FieldDefinition("Pre_K", "Students enrolled in pre-kindergarten", "count", "enrollment", "students"),
            FieldDefinition("KG", "Students enrolled in kindergarten", "count", "enrollment", "students"),
            FieldDefinition("Schl_Cn", "Number of schools serving the zone", "count", "school", "schools"),
            FieldDefinition("Schl_Lv", "School level (e.g. elementary)", "categorical", "school"),
            FieldDefinition("Stdnt_R", "Student ratio reported for the zone", "ratio", "school"),
        ]

        for field_def in base_fields:
            self.register(field_def)
