# order_store.py
"""
Order configuration store.

One `OrderConfigurationStore` holds the whole in-progress order for a
session. Every change goes through a named mutator so the invariants live
in one place:

- quantities are never negative; unparsable input becomes 0
- removing a garment or a color drops its quantity cells, nothing else
- artwork is keyed by print location and shared by every garment/color

Single-garment orders are the one-line case of `lines`; there is no
separate legacy shape.

`DraftAutoSaver` listens to the store and saves a draft snapshot for
signed-in customers after a quiet period.
"""

import asyncio
import logging
import math
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from schemas import (
    AppliedDiscount, ArtworkRecord, ArtworkTransform, CustomerInfo, DraftIn, DraftOut,
    GarmentOut, GarmentSelection, PaymentStyle, PrintConfig, LocationConfig, PrintLocation,
    Quote, ShippingAddress,
)
from settings import settings

log = logging.getLogger(__name__)

Listener = Callable[[str], None]

# Change topics passed to listeners
LINES = "lines"
PRINT_CONFIG = "print_config"
ARTWORK = "artwork"
CUSTOMER = "customer"
QUOTE = "quote"
DISCOUNT = "discount"
CAMPAIGN = "campaign"
RESET = "reset"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def coerce_quantity(value: Any) -> int:
    """
    Parses user input into a non-negative count.

    Strings are read up to the first non-digit, so "12abc" is 12 and "1e3"
    is 1. Anything without a leading integer is 0.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return 0
        return max(0, int(value))
    match = _LEADING_INT.match(str(value))
    if not match:
        return 0
    return max(0, int(match.group(1)))


# ===================================================================
# State pieces
# ===================================================================

@dataclass
class GarmentLine:
    colors: List[str] = field(default_factory=list)
    quantities: Dict[str, Dict[str, int]] = field(default_factory=dict)  # color -> size -> count

    def color_total(self, color: str) -> int:
        return sum(self.quantities.get(color, {}).values())

    @property
    def total(self) -> int:
        return sum(self.color_total(color) for color in self.quantities)


@dataclass
class LocalFile:
    """An artwork file held in memory before it is uploaded."""
    name: str
    content: bytes
    content_type: str = "image/png"
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class ArtworkSlot:
    file: Optional[LocalFile] = None
    record: Optional[ArtworkRecord] = None
    transform: Optional[ArtworkTransform] = None
    vectorized_svg: Optional[str] = None

    @property
    def has_artwork(self) -> bool:
        return self.file is not None or self.record is not None


@dataclass
class CampaignDetails:
    name: str = ""
    deadline: str = ""
    payment_style: PaymentStyle = PaymentStyle.EVERYONE_PAYS
    organizer_name: Optional[str] = None
    organizer_email: Optional[str] = None
    prices: Dict[str, float] = field(default_factory=dict)  # garment id -> price per shirt
    mockups: Dict[str, str] = field(default_factory=dict)   # color -> mockup data URL


# ===================================================================
# Store
# ===================================================================

class OrderConfigurationStore:
    def __init__(self):
        self._listeners: List[Listener] = []
        self._clear()

    def _clear(self):
        self.garment_id: Optional[str] = None
        self.lines: Dict[str, GarmentLine] = {}
        self.print_config = PrintConfig()
        self.artwork: Dict[PrintLocation, ArtworkSlot] = {}
        self.customer = CustomerInfo()
        self.shipping_address = ShippingAddress()
        self.quote: Optional[Quote] = None
        self.discount: Optional[AppliedDiscount] = None
        self.campaign = CampaignDetails()
        self.garments: Dict[str, GarmentOut] = {}
        self.draft_id: Optional[uuid.UUID] = None

    # --- subscriptions ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, topic: str):
        for listener in list(self._listeners):
            listener(topic)

    # --- garments ---

    def remember_garments(self, garments: List[GarmentOut]):
        """Caches catalog entries so names and colors can be looked up offline."""
        for garment in garments:
            self.garments[str(garment.id)] = garment

    def set_garment_id(self, garment_id):
        garment_id = str(garment_id)
        self.garment_id = garment_id
        self.lines.setdefault(garment_id, GarmentLine())
        self._notify(LINES)

    def add_garment(self, garment_id, colors: Optional[List[str]] = None):
        garment_id = str(garment_id)
        line = self.lines.setdefault(garment_id, GarmentLine())
        for color in colors or []:
            if color not in line.colors:
                line.colors.append(color)
        if self.garment_id is None:
            self.garment_id = garment_id
        self._notify(LINES)

    def remove_garment(self, garment_id):
        garment_id = str(garment_id)
        if self.lines.pop(garment_id, None) is None:
            return
        if self.garment_id == garment_id:
            self.garment_id = next(iter(self.lines), None)
        self._notify(LINES)

    # --- colors & quantities ---

    def _line(self, garment_id) -> GarmentLine:
        key = str(garment_id) if garment_id is not None else self.garment_id
        if key is None:
            raise ValueError("No garment selected")
        if key not in self.lines:
            self.lines[key] = GarmentLine()
            if self.garment_id is None:
                self.garment_id = key
        return self.lines[key]

    def add_color(self, color: str, garment_id=None):
        line = self._line(garment_id)
        if color not in line.colors:
            line.colors.append(color)
            self._notify(LINES)

    def remove_color(self, color: str, garment_id=None):
        line = self._line(garment_id)
        changed = color in line.colors or color in line.quantities
        if color in line.colors:
            line.colors.remove(color)
        line.quantities.pop(color, None)
        if changed:
            self._notify(LINES)

    def set_quantity(self, color: str, size: str, value: Any, garment_id=None):
        line = self._line(garment_id)
        if color not in line.colors:
            line.colors.append(color)
        line.quantities.setdefault(color, {})[size] = coerce_quantity(value)
        self._notify(LINES)

    def merge_quantities(self, color: str, sizes: Dict[str, Any], garment_id=None):
        line = self._line(garment_id)
        if color not in line.colors:
            line.colors.append(color)
        cells = line.quantities.setdefault(color, {})
        for size, value in sizes.items():
            cells[size] = coerce_quantity(value)
        self._notify(LINES)

    # --- print configuration ---

    def set_print_location(self, location: PrintLocation, enabled: Optional[bool] = None,
                           num_colors: Optional[int] = None):
        location = PrintLocation(location)
        current = self.print_config.locations.get(location, LocationConfig())
        colors = current.num_colors if num_colors is None else coerce_quantity(num_colors)
        colors = min(max(colors, 1), settings.MAX_INK_COLORS)
        self.print_config.locations[location] = LocationConfig(
            enabled=current.enabled if enabled is None else bool(enabled),
            num_colors=colors,
        )
        self._notify(PRINT_CONFIG)

    # --- artwork ---

    def _slot(self, location) -> ArtworkSlot:
        return self.artwork.setdefault(PrintLocation(location), ArtworkSlot())

    def set_artwork_file(self, location: PrintLocation, file: Optional[LocalFile],
                         transform: Optional[ArtworkTransform] = None):
        slot = self._slot(location)
        slot.file = file
        if file is None:
            slot.record = None
            slot.vectorized_svg = None
        if transform is not None:
            slot.transform = transform
        self._notify(ARTWORK)

    def set_artwork_transform(self, location: PrintLocation, transform: ArtworkTransform):
        self._slot(location).transform = transform
        self._notify(ARTWORK)

    def set_artwork_record(self, location: PrintLocation, record: Optional[ArtworkRecord]):
        self._slot(location).record = record
        self._notify(ARTWORK)

    def set_vectorized(self, location: PrintLocation, svg_data_url: Optional[str]):
        self._slot(location).vectorized_svg = svg_data_url
        self._notify(ARTWORK)

    def clear_artwork(self, location: PrintLocation):
        self.artwork.pop(PrintLocation(location), None)
        self._notify(ARTWORK)

    # --- customer ---

    def set_customer_info(self, **fields):
        self.customer = self.customer.model_copy(update=fields)
        self._notify(CUSTOMER)

    def set_shipping_address(self, **fields):
        self.shipping_address = self.shipping_address.model_copy(update=fields)
        self._notify(CUSTOMER)

    # --- quote & discount ---

    def set_quote(self, quote: Quote):
        self.quote = quote
        self._notify(QUOTE)

    def clear_quote(self):
        self.quote = None
        self._notify(QUOTE)

    def set_discount(self, discount: AppliedDiscount):
        self.discount = discount
        self._notify(DISCOUNT)

    def clear_discount(self):
        self.discount = None
        self._notify(DISCOUNT)

    # --- campaign ---

    def set_campaign(self, **fields):
        for name, value in fields.items():
            if not hasattr(self.campaign, name):
                raise AttributeError(f"Unknown campaign field: {name}")
            setattr(self.campaign, name, value)
        self._notify(CAMPAIGN)

    def reset(self):
        """Clears everything. Listeners stay attached."""
        self._clear()
        self._notify(RESET)

    # ===============================================================
    # Derived reads
    # ===============================================================

    @property
    def total_quantity(self) -> int:
        return sum(line.total for line in self.lines.values())

    @property
    def selected_garment_ids(self) -> List[str]:
        return list(self.lines)

    @property
    def is_multi_garment(self) -> bool:
        return len(self.lines) > 1

    def color_subtotal(self, color: str, garment_id=None) -> int:
        if garment_id is None and self.garment_id is None:
            return 0
        line = self.lines.get(str(garment_id) if garment_id is not None else self.garment_id)
        return line.color_total(color) if line else 0

    def garment_colors(self, garment_id=None) -> List[str]:
        line = self.lines.get(str(garment_id) if garment_id is not None else self.garment_id)
        return list(line.colors) if line else []

    def garment_quantity(self, garment_id) -> int:
        line = self.lines.get(str(garment_id))
        return line.total if line else 0

    def combined_color_size_quantities(self) -> Dict[str, Dict[str, int]]:
        """Sums every garment's matrix into one color -> size -> count mapping."""
        combined: Dict[str, Dict[str, int]] = {}
        for line in self.lines.values():
            for color, sizes in line.quantities.items():
                cells = combined.setdefault(color, {})
                for size, count in sizes.items():
                    cells[size] = cells.get(size, 0) + count
        return combined

    def selected_garments_payload(self) -> Optional[Dict[str, GarmentSelection]]:
        if not self.is_multi_garment:
            return None
        return {
            garment_id: GarmentSelection(colors=list(line.colors),
                                         color_size_quantities={c: dict(s) for c, s in line.quantities.items()})
            for garment_id, line in self.lines.items()
        }

    def all_colors(self) -> List[str]:
        colors: List[str] = []
        for line in self.lines.values():
            for color in line.colors:
                if color not in colors:
                    colors.append(color)
        return colors

    def enabled_locations(self) -> List[PrintLocation]:
        return self.print_config.enabled_locations()

    def locations_missing_artwork(self) -> List[PrintLocation]:
        return [loc for loc in self.enabled_locations()
                if not (loc in self.artwork and self.artwork[loc].has_artwork)]

    def draft_name(self) -> str:
        garment = self.garments.get(self.garment_id) if self.garment_id else None
        garment_part = garment.name if garment else "Order"
        colors = self.garment_colors()
        return f"{colors[0]} {garment_part} Draft" if colors else f"{garment_part} Draft"

    # ===============================================================
    # Draft snapshots
    # ===============================================================

    def to_draft(self) -> DraftIn:
        selections = self.selected_garments_payload()
        return DraftIn(
            draft_id=self.draft_id,
            name=self.draft_name(),
            garment_id=self.garment_id,
            selected_colors=self.garment_colors(),
            selected_garments=selections,
            color_size_quantities=self.combined_color_size_quantities(),
            print_config=self.print_config.model_copy(deep=True),
            artwork_file_records={loc.value: slot.record for loc, slot in self.artwork.items() if slot.record},
            artwork_transforms={loc.value: slot.transform for loc, slot in self.artwork.items() if slot.transform},
            vectorized_svg_data={loc.value: slot.vectorized_svg for loc, slot in self.artwork.items()
                                 if slot.vectorized_svg},
            quote=self.quote,
            shipping_address=self.shipping_address,
            **self.customer.model_dump(),
        )

    def load_draft(self, draft: DraftOut):
        """Restores a saved draft. In-memory files are gone; persisted records stand in for them."""
        self._clear()
        self.draft_id = draft.id
        if draft.selected_garments:
            for garment_id, raw in draft.selected_garments.items():
                selection = GarmentSelection.model_validate(raw)
                self.lines[garment_id] = GarmentLine(
                    colors=list(selection.colors),
                    quantities={c: {s: coerce_quantity(n) for s, n in sizes.items()}
                                for c, sizes in selection.color_size_quantities.items()},
                )
            self.garment_id = str(draft.garment_id) if draft.garment_id else next(iter(self.lines), None)
        elif draft.garment_id:
            self.garment_id = str(draft.garment_id)
            self.lines[self.garment_id] = GarmentLine(
                colors=list(draft.selected_colors),
                quantities={c: {s: coerce_quantity(n) for s, n in sizes.items()}
                            for c, sizes in draft.color_size_quantities.items()},
            )
        self.print_config = PrintConfig.model_validate(draft.print_config or {})
        for loc, raw in (draft.artwork_file_records or {}).items():
            self._slot(loc).record = ArtworkRecord.model_validate(raw)
        for loc, raw in (draft.artwork_transforms or {}).items():
            self._slot(loc).transform = ArtworkTransform.model_validate(raw)
        for loc, svg in (draft.vectorized_svg_data or {}).items():
            self._slot(loc).vectorized_svg = svg
        self.customer = CustomerInfo(
            customer_name=draft.customer_name or "",
            email=draft.email or "",
            phone=draft.phone or "",
            organization_name=draft.organization_name,
            need_by_date=draft.need_by_date,
        )
        if draft.shipping_address:
            self.shipping_address = ShippingAddress.model_validate(draft.shipping_address)
        if draft.quote:
            self.quote = Quote.model_validate(draft.quote)
        self._notify(RESET)


# ===================================================================
# Draft auto-save
# ===================================================================

class DraftAutoSaver:
    """
    Saves a draft after `delay` seconds without customer-info changes.

    Each qualifying change cancels the pending save and starts a new timer.
    Only customer-info edits count; hydrating the store from a draft
    notifies `RESET` and does not trigger a save. Save failures, including
    a change made with no event loop to run the save on, are logged and
    dropped; they never reach the caller.
    """

    def __init__(self, store: OrderConfigurationStore, client, is_authenticated: Callable[[], bool],
                 delay: float = settings.DRAFT_AUTOSAVE_SECONDS):
        self.store = store
        self.client = client
        self.is_authenticated = is_authenticated
        self.delay = delay
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self):
        self._unsubscribe = self.store.subscribe(self._on_change)

    def close(self):
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self.cancel()

    def cancel(self):
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def _on_change(self, topic: str):
        if topic != CUSTOMER:
            return
        if not self.is_authenticated():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.warning("Draft auto-save skipped: no running event loop.")
            return
        self.cancel()
        self._task = loop.create_task(self._save_after_delay())

    async def _save_after_delay(self):
        await asyncio.sleep(self.delay)
        await self.save_now()

    async def save_now(self):
        try:
            saved = await self.client.save_draft(self.store.to_draft())
            self.store.draft_id = saved.id
            log.info(f"Draft {saved.id} saved.")
        except Exception as e:
            log.warning(f"Draft auto-save failed: {e}", exc_info=True)

    async def flush(self):
        """Waits for a pending save, if any."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
