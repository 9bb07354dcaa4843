"""
Unit tests for the pricing service (services/pricing.py)
"""

import pytest

from conftest import ETH, TOKEN_ADDRESS, encode_state, make_state
from curvequote.core.errors import InvalidInputError
from curvequote.services.pricing import PricingService


@pytest.fixture
def pricing_service(curve_client):
    return PricingService(curve_client)


@pytest.mark.asyncio
async def test_get_price(pricing_service, mock_rpc_manager):
    mock_rpc_manager.eth_call.return_value = encode_state(make_state(real_eth_reserves=2 * ETH))

    result = await pricing_service.get_price(TOKEN_ADDRESS)

    assert result.price == pytest.approx(3e-8)
    assert result.market_cap == pytest.approx(30.0)
    assert result.volume_proxy == pytest.approx(2.0)
    assert 0 < result.bonding_progress < 100


@pytest.mark.asyncio
async def test_get_price_unregistered(pricing_service, mock_rpc_manager, unregistered_curve_state):
    mock_rpc_manager.eth_call.return_value = encode_state(unregistered_curve_state)

    assert await pricing_service.get_price(TOKEN_ADDRESS) is None


@pytest.mark.asyncio
async def test_get_price_graduated_still_priced(pricing_service, mock_rpc_manager, graduated_curve_state):
    mock_rpc_manager.eth_call.return_value = encode_state(graduated_curve_state)

    result = await pricing_service.get_price(TOKEN_ADDRESS)

    assert result.price == pytest.approx(150 / 200_000_000)
    assert result.bonding_progress == 0.0


@pytest.mark.asyncio
async def test_get_price_invalid_address(pricing_service):
    with pytest.raises(InvalidInputError):
        await pricing_service.get_price("0x12")


@pytest.mark.asyncio
async def test_to_response(pricing_service, mock_rpc_manager, standard_curve_state):
    mock_rpc_manager.eth_call.return_value = encode_state(standard_curve_state)

    response = PricingService.to_response(await pricing_service.get_price(TOKEN_ADDRESS))

    assert set(response) == {"price", "marketCap", "volume24h", "bondingProgress"}
    assert response["volume24h"] == 0.0
