"""
Single entry point for chart and suggestion generation.

Flow:
1. Validate the user query and the provider config (no network on failure).
2. Look up the adapter registered for config.provider.
3. Delegate; typed errors from the adapter propagate unchanged.

The dispatcher keeps no state between calls and is safe to use concurrently.
"""

import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from .adapters import ADAPTER_FACTORIES, AdapterFactory, ProviderAdapter, build_adapter
from .errors import InputError
from .schemas import (
    ChartSpec,
    DynamicData,
    Provider,
    ProviderConfig,
    safe_validate,
    validate_query,
)

logger = logging.getLogger(__name__)

ConfigInput = Union[ProviderConfig, Dict[str, Any]]
DataInput = Union[DynamicData, Dict[str, Any], None]


async def _validated_config(config: ConfigInput) -> ProviderConfig:
    result = await safe_validate(ProviderConfig, config)
    if not result.success:
        raise InputError(f"Invalid configuration: {result.error}")
    return result.data


async def _validated_data(dynamic_data: DataInput) -> Optional[DynamicData]:
    if dynamic_data is None:
        return None
    result = await safe_validate(DynamicData, dynamic_data)
    if not result.success:
        raise InputError(f"Invalid dataset: {result.error}")
    return result.data


class ChartDispatcher:
    def __init__(
        self,
        registry: Optional[Dict[Provider, AdapterFactory]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.registry = dict(ADAPTER_FACTORIES if registry is None else registry)
        self.transport = transport

    def adapter_for(self, provider: Provider) -> ProviderAdapter:
        return build_adapter(provider, self.transport, self.registry)

    async def generate_chart(
        self,
        prompt: str,
        config: ConfigInput,
        system_prompt_template: str,
        dynamic_data: DataInput = None,
    ) -> ChartSpec:
        query = validate_query(prompt)
        if not query.success:
            raise InputError(f"Invalid query: {query.error}")
        provider_config = await _validated_config(config)
        data = await _validated_data(dynamic_data)

        adapter = self.adapter_for(provider_config.provider)
        logger.info(f"Generating chart with {adapter.label} ({provider_config.model})")
        return await adapter.generate(query.data, system_prompt_template, provider_config, data)

    async def generate_suggestions(
        self,
        config: ConfigInput,
        system_prompt_template: str,
        dynamic_data: DataInput,
    ) -> List[str]:
        """Never raises: invalid input or provider failure gives []."""
        try:
            provider_config = await _validated_config(config)
            data = await _validated_data(dynamic_data)
            if data is None:
                raise InputError("Please upload a dataset first")
            adapter = self.adapter_for(provider_config.provider)
            return await adapter.generate_suggestions(system_prompt_template, provider_config, data)
        except Exception as e:
            logger.warning(f"Skipping suggestions: {type(e).__name__}: {e}")
            return []


_default_dispatcher = ChartDispatcher()


async def generate_chart(
    prompt: str,
    config: ConfigInput,
    system_prompt_template: str,
    dynamic_data: DataInput = None,
) -> ChartSpec:
    return await _default_dispatcher.generate_chart(prompt, config, system_prompt_template, dynamic_data)


async def generate_suggestions(
    config: ConfigInput,
    system_prompt_template: str,
    dynamic_data: DataInput,
) -> List[str]:
    return await _default_dispatcher.generate_suggestions(config, system_prompt_template, dynamic_data)
