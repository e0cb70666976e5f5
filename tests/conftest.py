import os
import tempfile

# Must run before act_generator modules create their loggers
os.environ.setdefault("ACT_GEN_LOG_DIR", tempfile.mkdtemp(prefix="act_gen_logs_"))
os.environ.setdefault("ACT_GEN_LOG_CONSOLE", "false")

import pytest  # noqa: E402

from act_generator.models import AdGroupTemplate, AdTemplate, Budget, CampaignTemplate  # noqa: E402
from act_generator.orchestrator import GenerationOrchestrator  # noqa: E402


@pytest.fixture
def orchestrator() -> GenerationOrchestrator:
    return GenerationOrchestrator()


@pytest.fixture
def product_template() -> CampaignTemplate:
    return CampaignTemplate(
        id="tmpl-1",
        name="{brand} - {product}",
        platform="google",
        objective="CONVERSIONS",
        budget=Budget(type="daily", amount=50.0, currency="USD"),
        ad_group_templates=[
            AdGroupTemplate(
                id="ag-1",
                name="{product} group",
                ad_templates=[
                    AdTemplate(id="ad-1", headline="Buy {product}", description="From {brand}"),
                ],
            ),
        ],
    )


@pytest.fixture
def product_rows():
    return [
        {"id": "r1", "brand": "Nike", "product": "Air"},
        {"id": "r2", "brand": "Adidas", "product": "Boost"},
        {"id": "r3", "brand": "Puma", "product": "Suede"},
    ]
