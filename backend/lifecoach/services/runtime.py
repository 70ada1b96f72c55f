"""Process-wide assistant state, owned by one object and injected into routes."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from lifecoach.core.config import MAX_PROVIDER_KEYS, Settings, settings
from lifecoach.services.budget_governor import BudgetGovernor
from lifecoach.services.chat_gateway import ChatGateway
from lifecoach.services.credential_pool import CredentialPool
from lifecoach.services.intervention_service import InterventionStore
from lifecoach.services.llm_client import ProviderClient


@dataclass
class AssistantRuntime:
    pool: CredentialPool
    budget: BudgetGovernor
    provider: ProviderClient
    interventions: InterventionStore

    @property
    def gateway(self) -> ChatGateway:
        return ChatGateway(self.pool, self.budget, self.provider)

    @classmethod
    def from_settings(cls, config: Settings) -> "AssistantRuntime":
        return cls(
            pool=CredentialPool(config.provider_keys()[:MAX_PROVIDER_KEYS]),
            budget=BudgetGovernor(config.daily_token_limit, timezone=config.timezone),
            provider=ProviderClient(model=config.provider_model, temperature=config.provider_temperature),
            interventions=InterventionStore(),
        )


@lru_cache
def get_runtime() -> AssistantRuntime:
    return AssistantRuntime.from_settings(settings)
