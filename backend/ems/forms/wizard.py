from __future__ import annotations
"""Intake wizard and repair closeout form built on FormState.

Wizard pages are derived from field types, not from the advisory ``step``
attribute: page 1 selects the branch, page 2 holds every non-evidence field,
page 3 holds image and gps fields, page 4 is the review.
"""
from typing import Any, Dict, List, Optional

from ems.errors import ValidationError
from ems.forms.fields import EVIDENCE_TYPES, DynamicField, SystemConfig, ordered
from ems.forms.interpreter import FormState, Watermark
from ems.forms.location import LocationProvider
from ems.services.classifier import Assessment, KeywordSets, PriorityMonitor, keywords_for

STEP_BRANCH = 1
STEP_DETAILS = 2
STEP_EVIDENCE = 3
STEP_REVIEW = 4


class IntakeWizard:
    def __init__(self, config: SystemConfig, keywords: Optional[KeywordSets] = None,
                 branch_id: Optional[str] = None, values: Optional[Dict[str, Any]] = None):
        self.config = config
        self.form = FormState(config.report_questions, values)
        self.monitor = PriorityMonitor(keywords or keywords_for(config))
        self.branch_id = branch_id
        self.step = STEP_BRANCH
        self.assessment: Assessment = self.monitor.observe(self.form.values)

    @property
    def priority(self) -> str:
        return self.assessment.priority

    def fields_for_step(self, step: Optional[int] = None) -> List[DynamicField]:
        step = self.step if step is None else step
        if step == STEP_DETAILS:
            return ordered([f for f in self.config.report_questions if f.type not in EVIDENCE_TYPES])
        if step == STEP_EVIDENCE:
            return ordered([f for f in self.config.report_questions if f.type in EVIDENCE_TYPES])
        return []

    def select_branch(self, branch_id: str) -> None:
        self.branch_id = branch_id

    def _observe(self) -> Assessment:
        self.assessment = self.monitor.observe(self.form.values)
        return self.assessment

    def set_value(self, field_id: str, raw: Any) -> Assessment:
        self.form.set_value(field_id, raw)
        return self._observe()

    def add_image(self, field_id: str, ref: str, watermark: Optional[Watermark] = None) -> List[str]:
        return self.form.add_image(field_id, ref, watermark)

    def remove_image(self, field_id: str, index: int) -> List[str]:
        return self.form.remove_image(field_id, index)

    def capture_location(self, field_id: str, provider: LocationProvider, timeout: Optional[float] = None):
        return self.form.capture_location(field_id, provider, timeout)

    def missing_for_step(self, step: Optional[int] = None) -> List[str]:
        step = self.step if step is None else step
        if step == STEP_BRANCH:
            return [] if self.branch_id else ['branchId']
        if step in (STEP_DETAILS, STEP_EVIDENCE):
            return self.form.missing_required(self.fields_for_step(step))
        return []

    def validate_step(self, step: Optional[int] = None) -> None:
        missing = self.missing_for_step(step)
        if missing:
            raise ValidationError('required fields missing', fields=missing)

    def next_step(self) -> int:
        self.validate_step()
        if self.step < STEP_REVIEW:
            self.step += 1
        return self.step

    def prev_step(self) -> int:
        if self.step > STEP_BRANCH:
            self.step -= 1
        return self.step

    def submission(self) -> Dict[str, Any]:
        """Values ready for report assembly; every page must pass."""
        for step in (STEP_BRANCH, STEP_DETAILS, STEP_EVIDENCE):
            self.validate_step(step)
        return dict(self.form.values)


class CloseoutForm:
    """Single-page repair closeout form over ``repairFields``."""

    def __init__(self, config: SystemConfig, values: Optional[Dict[str, Any]] = None):
        self.config = config
        self.form = FormState(config.repair_fields, values)

    def set_value(self, field_id: str, raw: Any):
        return self.form.set_value(field_id, raw)

    def add_image(self, field_id: str, ref: str, watermark: Optional[Watermark] = None) -> List[str]:
        return self.form.add_image(field_id, ref, watermark)

    def remove_image(self, field_id: str, index: int) -> List[str]:
        return self.form.remove_image(field_id, index)

    def submission(self) -> Dict[str, Any]:
        self.form.validate()
        return dict(self.form.values)


__all__ = ['IntakeWizard', 'CloseoutForm', 'STEP_BRANCH', 'STEP_DETAILS', 'STEP_EVIDENCE', 'STEP_REVIEW']
