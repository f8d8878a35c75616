# wizard.py
"""
Multi-step configuration wizard: garments -> colors/sizes -> artwork -> checkout.

The wizard reads and writes the order store and keeps the store's quote in
sync with quantity and print-config edits.
"""

import logging
import math
import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from errors import IssueKind, OrderValidationError, RateLimitedError, ServiceError, ValidationIssue
from order_store import OrderConfigurationStore
from placement import LOCATION_LABELS, PlacementReport, analyze_placement
from schemas import PrintLocation, Quote
from settings import settings

log = logging.getLogger(__name__)

REQUIRED_CUSTOMER_FIELDS = {
    "customer_name": "Name",
    "email": "Email",
    "phone": "Phone",
}
REQUIRED_ADDRESS_FIELDS = {
    "line1": "Street address",
    "city": "City",
    "state": "State",
    "postal_code": "ZIP code",
}


class WizardStep(str, Enum):
    GARMENTS = "garments"
    COLORS = "colors"
    ARTWORK = "artwork"
    CHECKOUT = "checkout"


STEP_ORDER = [WizardStep.GARMENTS, WizardStep.COLORS, WizardStep.ARTWORK, WizardStep.CHECKOUT]


def missing_customer_fields(store: OrderConfigurationStore) -> List[ValidationIssue]:
    issues = []
    for name, label in REQUIRED_CUSTOMER_FIELDS.items():
        if not (getattr(store.customer, name) or "").strip():
            issues.append(ValidationIssue(IssueKind.MISSING_FIELD, name, f"{label} is required"))
    for name, label in REQUIRED_ADDRESS_FIELDS.items():
        if not (getattr(store.shipping_address, name) or "").strip():
            issues.append(ValidationIssue(IssueKind.MISSING_FIELD, f"shipping_address.{name}", f"{label} is required"))
    return issues


class ConfigurationWizard:
    def __init__(self, store: OrderConfigurationStore, client, min_quantity: int = settings.MIN_ORDER_QUANTITY):
        self.store = store
        self.client = client
        self.min_quantity = min_quantity
        self.step = WizardStep.GARMENTS
        self.quote_error: Optional[str] = None

    # ===============================================================
    # Gates
    # ===============================================================

    def issues_for(self, step: WizardStep) -> List[ValidationIssue]:
        """Issues that keep the user from leaving `step`."""
        store = self.store
        if step == WizardStep.GARMENTS:
            if not store.selected_garment_ids:
                return [ValidationIssue(IssueKind.NO_GARMENT, None, "Select at least one garment")]
            return []
        if step == WizardStep.COLORS:
            if store.total_quantity < self.min_quantity:
                return [ValidationIssue(
                    IssueKind.QUANTITY_BELOW_MINIMUM, None,
                    f"Minimum order quantity is {self.min_quantity} (currently {store.total_quantity})",
                )]
            return []
        if step == WizardStep.ARTWORK:
            if not store.enabled_locations():
                return [ValidationIssue(IssueKind.NO_PRINT_LOCATION, None, "Enable at least one print location")]
            return [
                ValidationIssue(IssueKind.MISSING_ARTWORK, loc.value, f"Upload artwork for {LOCATION_LABELS[loc]}")
                for loc in store.locations_missing_artwork()
            ]
        return missing_customer_fields(store)

    def checkout_issues(self) -> List[ValidationIssue]:
        issues = []
        for step in STEP_ORDER:
            issues.extend(self.issues_for(step))
        return issues

    def can_continue(self, step: Optional[WizardStep] = None) -> bool:
        return not self.issues_for(step or self.step)

    def can_checkout(self) -> bool:
        return not self.checkout_issues()

    # ===============================================================
    # Navigation
    # ===============================================================

    def next_step(self) -> WizardStep:
        issues = self.issues_for(self.step)
        if issues:
            raise OrderValidationError(issues)
        index = STEP_ORDER.index(self.step)
        if index < len(STEP_ORDER) - 1:
            self.step = STEP_ORDER[index + 1]
        return self.step

    def previous_step(self) -> WizardStep:
        index = STEP_ORDER.index(self.step)
        if index > 0:
            self.step = STEP_ORDER[index - 1]
        return self.step

    def go_to(self, step: WizardStep) -> WizardStep:
        """Jumps to `step` if every earlier step is complete."""
        step = WizardStep(step)
        for earlier in STEP_ORDER[:STEP_ORDER.index(step)]:
            issues = self.issues_for(earlier)
            if issues:
                raise OrderValidationError(issues)
        self.step = step
        return self.step

    # ===============================================================
    # Edits that move the quote
    # ===============================================================

    async def set_quantity(self, color: str, size: str, value, garment_id=None) -> Optional[Quote]:
        self.store.set_quantity(color, size, value, garment_id=garment_id)
        return await self.refresh_quote()

    async def remove_garment(self, garment_id) -> Optional[Quote]:
        self.store.remove_garment(garment_id)
        return await self.refresh_quote()

    async def remove_color(self, color: str, garment_id=None) -> Optional[Quote]:
        self.store.remove_color(color, garment_id=garment_id)
        return await self.refresh_quote()

    async def set_print_location(self, location: PrintLocation, enabled=None, num_colors=None) -> Optional[Quote]:
        self.store.set_print_location(location, enabled=enabled, num_colors=num_colors)
        return await self.refresh_quote()

    async def refresh_quote(self) -> Optional[Quote]:
        """
        Fetches a fresh quote once the order meets the minimum.

        Below the minimum the stale quote is cleared. A failed fetch is kept
        in `quote_error` for display and the previous quote is dropped.
        """
        store = self.store
        if store.total_quantity < self.min_quantity:
            if store.quote is not None:
                store.clear_quote()
            return None

        lines = [(gid, store.garment_quantity(gid)) for gid in store.selected_garment_ids
                 if store.garment_quantity(gid) > 0]
        try:
            quote = await self.client.fetch_quote(lines, store.print_config)
        except ServiceError as e:
            log.warning(f"Quote refresh failed: {e}")
            self.quote_error = str(e)
            store.clear_quote()
            return None
        self.quote_error = None
        store.set_quote(quote)
        log.info(f"Quote refreshed: {store.total_quantity} shirts, total {quote.total:.2f}")
        return quote

    def dismiss_quote_error(self):
        self.quote_error = None

    # ===============================================================
    # Artwork feedback
    # ===============================================================

    def placement_reports(self) -> Dict[PrintLocation, PlacementReport]:
        """Advisory placement checks for every enabled location with a sized, placed image."""
        reports = {}
        for loc in self.store.enabled_locations():
            slot = self.store.artwork.get(loc)
            if slot is None or slot.transform is None:
                continue
            source = slot.file if slot.file is not None else slot.record
            if source is None or not source.width or not source.height:
                continue
            reports[loc] = analyze_placement(source.width, source.height, slot.transform, loc)
        return reports

    def has_placement_warnings(self) -> bool:
        return any(report.warnings for report in self.placement_reports().values())


# ===================================================================
# AI regeneration cooldown
# ===================================================================

class RegenerationCooldown:
    """
    Countdown started by a rate-limited generation request.

    While it runs, `generate` refuses to call the service and reports the
    seconds left.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._until = 0.0

    def start(self, seconds: float):
        self._until = self._clock() + seconds

    @property
    def remaining(self) -> int:
        return max(0, math.ceil(self._until - self._clock()))

    @property
    def active(self) -> bool:
        return self.remaining > 0

    async def generate(self, client, prompt: str, reference_images: Optional[List[str]] = None):
        if self.active:
            raise RateLimitedError("Please wait before generating again", retry_after=self.remaining)
        try:
            return await client.generate_artwork(prompt, reference_images)
        except RateLimitedError as e:
            log.info(f"Artwork generation rate limited; retry in {e.retry_after}s")
            self.start(e.retry_after)
            raise
