"""
Service container shared by the HTTP routes.
"""
import logging
from dataclasses import dataclass

from fastapi import Request

from .balances import BalanceService
from .config import Settings
from .dexscreener_client import DexScreenerClient
from .jupiter_client import JupiterClient
from .kv_store import create_kv_store
from .meteora_client import MeteoraClient
from .p2p_store import OrderRepository
from .prices import PriceService
from .pumpfun_client import PumpFunClient
from .rpc_client import SolanaRpcClient
from .solana_client import TransactionRelay
from .swap_router import SwapRouter

logger = logging.getLogger(__name__)


@dataclass
class Services:
    rpc: SolanaRpcClient
    relay: TransactionRelay
    jupiter: JupiterClient
    meteora: MeteoraClient
    pumpfun: PumpFunClient
    dexscreener: DexScreenerClient
    prices: PriceService
    swap_router: SwapRouter
    balances: BalanceService
    orders: OrderRepository

    @classmethod
    def from_settings(cls, settings: Settings) -> "Services":
        rpc = SolanaRpcClient(settings.rpc_endpoints, timeout=settings.rpc_timeout)
        jupiter = JupiterClient(
            quote_urls=settings.jupiter_quote_urls,
            swap_urls=settings.jupiter_swap_urls,
            price_url=settings.jupiter_price_url,
            api_key=settings.jupiter_api_key,
            timeout=settings.quote_timeout
        )
        meteora = MeteoraClient(settings.meteora_base_url, timeout=settings.quote_timeout)
        pumpfun = PumpFunClient(
            quote_url=settings.pumpfun_quote_url,
            trade_url=settings.pumpfun_trade_url,
            curve_url=settings.pumpfun_curve_url,
            timeout=settings.pumpfun_timeout
        )
        dexscreener = DexScreenerClient(settings.dexscreener_base_urls, timeout=settings.price_timeout)

        logger.info(f"RPC endpoints configured: {len(settings.rpc_endpoints)}")
        return cls(
            rpc=rpc,
            relay=TransactionRelay(settings.rpc_endpoints, timeout=settings.rpc_timeout),
            jupiter=jupiter,
            meteora=meteora,
            pumpfun=pumpfun,
            dexscreener=dexscreener,
            prices=PriceService(dexscreener, jupiter, timeout=settings.price_timeout * 2),
            swap_router=SwapRouter(
                jupiter, meteora, pumpfun,
                bridge_tokens=settings.bridge_tokens,
                pump_mints=settings.pump_mints,
                timeout=settings.quote_timeout
            ),
            balances=BalanceService(rpc),
            orders=OrderRepository(create_kv_store(settings.kv_data_dir)),
        )

    async def close(self):
        for client in (self.rpc, self.relay, self.jupiter, self.meteora, self.pumpfun, self.dexscreener):
            await client.close()


def get_services(request: Request) -> Services:
    return request.app.state.services
