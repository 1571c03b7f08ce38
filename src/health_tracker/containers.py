"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from health_tracker.adapters.fdc_client import HttpxFdcClient
from health_tracker.adapters.open_food_facts_client import HttpxOpenFoodFactsClient
from health_tracker.adapters.openai_extraction_client import OpenAIExtractionClient
from health_tracker.adapters.supabase_atc_repository import SupabaseAtcCodeRepository
from health_tracker.adapters.supabase_catalog_repository import (
    SupabaseCatalogRepository,
)
from health_tracker.adapters.supabase_event_repository import SupabaseEventRepository
from health_tracker.adapters.supabase_registry_repository import (
    SupabaseRegistryRepository,
)
from health_tracker.adapters.supabase_template_repository import (
    SupabaseTemplateRepository,
)
from health_tracker.app_logging import configure_logging
from health_tracker.config import Settings
from health_tracker.services.barcodes import BarcodeConflictDetector
from health_tracker.services.cache import InMemoryCache
from health_tracker.services.catalog import CatalogService
from health_tracker.services.extraction import ExtractionService
from health_tracker.services.medications import MedicationService
from health_tracker.services.patterns import PatternService
from health_tracker.services.product_search import ProductSearchService
from health_tracker.services.registry import RegistryService
from health_tracker.services.templates import TemplateService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    conflict_detector: BarcodeConflictDetector
    catalog_service: CatalogService
    registry_service: RegistryService
    pattern_service: PatternService
    template_service: TemplateService
    extraction_service: ExtractionService
    medication_service: MedicationService
    product_search_service: ProductSearchService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    configure_logging()
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    catalog_repository = SupabaseCatalogRepository(supabase_client)
    registry_repository = SupabaseRegistryRepository(supabase_client)
    event_repository = SupabaseEventRepository(supabase_client)
    template_repository = SupabaseTemplateRepository(supabase_client)
    atc_repository = SupabaseAtcCodeRepository(supabase_client)

    conflict_detector = BarcodeConflictDetector(
        repository=catalog_repository,
        food_staleness_months=resolved_settings.food_staleness_months,
        product_staleness_months=resolved_settings.product_staleness_months,
    )
    registry_service = RegistryService(
        repository=registry_repository,
        fuzzy_min_times_logged=resolved_settings.registry_fuzzy_min_times_logged,
        fuzzy_limit=resolved_settings.registry_fuzzy_limit,
    )
    catalog_service = CatalogService(
        repository=catalog_repository,
        conflict_detector=conflict_detector,
        registry_service=registry_service,
        candidate_limit=resolved_settings.catalog_candidate_limit,
        ocr_confidence_cutoff=resolved_settings.ocr_confidence_cutoff,
    )
    template_service = TemplateService(
        repository=template_repository,
        event_repository=event_repository,
        match_threshold=resolved_settings.template_match_threshold,
    )
    pattern_service = PatternService(
        event_repository=event_repository,
        template_repository=template_repository,
        similarity_threshold=resolved_settings.pattern_similarity_threshold,
        time_window_minutes=resolved_settings.pattern_time_window_minutes,
        min_occurrences=resolved_settings.pattern_min_occurrences,
        lookback_days=resolved_settings.pattern_lookback_days,
    )
    extraction_client = OpenAIExtractionClient.create(resolved_settings.openai_api_key)
    extraction_service = ExtractionService(
        client=extraction_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    medication_service = MedicationService(
        client=extraction_client,
        repository=atc_repository,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        ddd_warning_ratio=resolved_settings.medication_ddd_warning_ratio,
    )
    off_client = HttpxOpenFoodFactsClient.create(
        resolved_settings.open_food_facts_base_url
    )
    fdc_client = (
        HttpxFdcClient.create(
            api_key=resolved_settings.fdc_api_key,
            base_url=resolved_settings.fdc_base_url,
        )
        if resolved_settings.fdc_api_key
        else None
    )
    product_search_service = ProductSearchService(
        off_client=off_client,
        fdc_client=fdc_client,
        cache=InMemoryCache(),
    )

    async def close_resources() -> None:
        await off_client.close()
        if fdc_client is not None:
            await fdc_client.close()

    return AppContainer(
        settings=resolved_settings,
        conflict_detector=conflict_detector,
        catalog_service=catalog_service,
        registry_service=registry_service,
        pattern_service=pattern_service,
        template_service=template_service,
        extraction_service=extraction_service,
        medication_service=medication_service,
        product_search_service=product_search_service,
        close_resources=close_resources,
    )
