# campaign_flow.py
"""
Campaign orchestrator.

Alternative to checkout: packages the current configuration into a group
campaign instead of charging a deposit. No payment happens here; the
payment style is stored on the campaign for later.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from checkout import persist_artwork
from errors import IssueKind, OrderValidationError, StorefrontError, ValidationIssue
from order_store import OrderConfigurationStore
from schemas import CampaignCreate, CampaignGarmentConfig
from settings import settings
from wizard import ConfigurationWizard, WizardStep

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CampaignResult:
    id: str
    slug: str
    landing_url: str


class CampaignOrchestrator:
    def __init__(self, store: OrderConfigurationStore, client, wizard: Optional[ConfigurationWizard] = None):
        self.store = store
        self.client = client
        self.wizard = wizard or ConfigurationWizard(store, client)
        self.submitting = False
        self.error: Optional[str] = None

    def issues(self) -> List[ValidationIssue]:
        issues = self.wizard.issues_for(WizardStep.GARMENTS) + self.wizard.issues_for(WizardStep.ARTWORK)
        campaign = self.store.campaign
        if not campaign.name.strip():
            issues.append(ValidationIssue(IssueKind.MISSING_FIELD, "name", "Campaign name is required"))
        if not campaign.deadline.strip():
            issues.append(ValidationIssue(IssueKind.MISSING_FIELD, "deadline", "Campaign deadline is required"))
        return issues

    async def calculate_prices(self) -> Dict[str, float]:
        """Per-garment campaign prices (garment + print, no setup fee)."""
        result = await self.client.calculate_campaign_prices(self.store.selected_garment_ids, self.store.print_config)
        if result.missing_garments:
            log.warning(f"Campaign pricing skipped unknown garments: {result.missing_garments}")
        self.store.set_campaign(prices=dict(result.prices))
        return result.prices

    async def upload_mockups(self) -> Dict[str, str]:
        """Uploads one mockup per color. A failed upload is logged and skipped."""
        urls = {}
        for color, image in self.store.campaign.mockups.items():
            try:
                urls[color] = await self.client.upload_mockup(color, image)
            except StorefrontError as e:
                log.warning(f"Mockup upload for {color} failed: {e}")
        return urls

    def build_payload(self, artwork, prices: Dict[str, float], mockup_urls: Dict[str, str]) -> CampaignCreate:
        store = self.store
        campaign = store.campaign
        configs = {
            gid: CampaignGarmentConfig(price=prices.get(gid, 0.0), colors=store.garment_colors(gid))
            for gid in store.selected_garment_ids
        }
        first_mockup = next(iter(mockup_urls.values()), None)
        return CampaignCreate(
            name=campaign.name.strip(),
            deadline=campaign.deadline,
            payment_style=campaign.payment_style,
            garment_id=store.garment_id,
            selected_colors=store.garment_colors(),
            garment_configs=configs,
            print_config=store.print_config,
            artwork_urls={r.location.value: r.vectorized_file_url or r.file_url for r in artwork},
            artwork_transforms={r.location.value: r.transform for r in artwork if r.transform},
            price_per_shirt=prices.get(store.garment_id, 0.0),
            organizer_name=campaign.organizer_name,
            organizer_email=campaign.organizer_email,
            mockup_image_url=first_mockup,
            mockup_image_urls=mockup_urls,
        )

    async def create(self) -> Optional[CampaignResult]:
        """Creates the campaign and clears the store. Returns None if already running."""
        if self.submitting:
            log.info("Campaign creation already in progress.")
            return None

        self.submitting = True
        self.error = None
        try:
            issues = self.issues()
            if issues:
                raise OrderValidationError(issues)

            prices = await self.calculate_prices()
            artwork = await persist_artwork(self.store, self.client)
            mockup_urls = await self.upload_mockups()

            created = await self.client.create_campaign(self.build_payload(artwork, prices, mockup_urls))
            log.info(f"Campaign {created.slug} created.")
            self.store.reset()
            return CampaignResult(
                id=str(created.id),
                slug=created.slug,
                landing_url=f"{settings.FRONTEND_URL}/campaigns/{created.slug}/created",
            )
        except StorefrontError as e:
            self.error = str(e)
            log.warning(f"Campaign creation failed: {e}")
            raise
        finally:
            self.submitting = False
