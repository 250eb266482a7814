"""
Service container.

Vendor clients, RPC clients and the Gemini model are built once at process
start and shared. Services that need a database session are produced per
update (or per job run) by the factory methods.
"""

from dataclasses import dataclass, field

import aiohttp
from aiogram import Bot
from loguru import logger
from redis.asyncio import Redis
from solana.rpc.async_api import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from web3 import AsyncHTTPProvider, AsyncWeb3

from app.config.constants import BLOCKCHAIN_TIMEOUT
from app.config.settings import Settings
from app.models.enums import ChainFamily
from app.services.balance_service import BalanceService
from app.services.chains.networks import get_network, supported_chains
from app.services.conversation_service import ConversationService
from app.services.custody.cdp_client import CdpClient
from app.services.custody.privy_client import PrivyClient
from app.services.deposit_notification_service import DepositNotificationService
from app.services.documents.document_service import DocumentService
from app.services.documents.pdf_renderer import PdfRenderer
from app.services.intent.llm_client import GeminiClient
from app.services.intent.parser import IntentParser
from app.services.notification_service import NotificationService
from app.services.offramp.offramp_service import OfframpService
from app.services.offramp.paycrest_client import PaycrestClient
from app.services.offramp.rate_cache import RateCache
from app.services.transactions.dispatcher import TransactionDispatcher
from app.services.transactions.fees import FeeEstimator
from app.services.transactions.formatter import TransactionFormatter
from app.services.transactions.reconciler import TransactionReconciler
from app.services.wallet_service import WalletService
from app.utils.redis_utils import get_redis_client, get_redis_url_masked


def build_evm_clients(config: Settings) -> dict[str, AsyncWeb3]:
    """AsyncWeb3 client per EVM chain label."""
    rpc_urls = {
        "base": config.base_rpc_url,
        "ethereum": config.ethereum_rpc_url,
    }
    clients: dict[str, AsyncWeb3] = {}
    for chain in supported_chains():
        network = get_network(chain)
        if network is None or network.family != ChainFamily.EVM:
            continue
        url = rpc_urls.get(network.chain)
        if not url:
            logger.warning(f"No RPC URL configured for {network.chain}")
            continue
        provider = AsyncHTTPProvider(
            url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=BLOCKCHAIN_TIMEOUT)}
        )
        clients[network.chain] = AsyncWeb3(provider)
    return clients


@dataclass
class ServiceContainer:
    """Process-wide clients plus per-session service factories."""

    session_maker: async_sessionmaker[AsyncSession]
    privy: PrivyClient
    solana: AsyncClient
    evm_clients: dict[str, AsyncWeb3]
    intent_parser: IntentParser
    rate_cache: RateCache
    cdp: CdpClient | None = None
    paycrest: PaycrestClient | None = None
    redis: Redis | None = None
    notifier: NotificationService | None = None
    formatter: TransactionFormatter = field(init=False)
    fee_estimator: FeeEstimator = field(init=False)
    balance_service: BalanceService = field(init=False)
    pdf_renderer: PdfRenderer = field(init=False)

    def __post_init__(self) -> None:
        self.formatter = TransactionFormatter(self.solana)
        self.fee_estimator = FeeEstimator(self.evm_clients, self.solana)
        self.balance_service = BalanceService(self.evm_clients, self.solana)
        self.pdf_renderer = PdfRenderer()

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        session_maker: async_sessionmaker[AsyncSession],
        bot: Bot | None = None,
    ) -> "ServiceContainer":
        """
        Build every client from configuration.

        Optional vendors (CDP, Paycrest, Gemini, Redis) are left out when
        their credentials are not configured.

        Args:
            config: Application settings
            session_maker: Session factory
            bot: Bot used for out-of-band notifications

        Returns:
            ServiceContainer
        """
        privy = PrivyClient(
            config.privy_app_id, config.privy_app_secret, config.privy_api_url
        )
        cdp = None
        if config.cdp_enabled:
            cdp = CdpClient(
                config.cdp_api_key_name, config.cdp_api_key_secret, config.cdp_api_url
            )
        else:
            logger.warning("CDP credentials not set, swaps disabled")

        paycrest = None
        if config.paycrest_enabled:
            paycrest = PaycrestClient(config.paycrest_api_key, config.paycrest_api_url)
        else:
            logger.warning("PAYCREST_API_KEY not set, off-ramp disabled")

        llm = None
        if config.gemini_api_key:
            llm = GeminiClient(config.gemini_api_key, config.gemini_model)
        else:
            logger.warning("GEMINI_API_KEY not set, using rule-based intent parsing")

        redis_client = get_redis_client(config.redis_url)
        if redis_client is not None:
            logger.info(f"Rate cache backed by Redis at {get_redis_url_masked(config.redis_url)}")

        container = cls(
            session_maker=session_maker,
            privy=privy,
            solana=AsyncClient(config.solana_rpc_url, timeout=BLOCKCHAIN_TIMEOUT),
            evm_clients=build_evm_clients(config),
            intent_parser=IntentParser(llm),
            rate_cache=RateCache(redis_client),
            cdp=cdp,
            paycrest=paycrest,
            redis=redis_client,
            notifier=NotificationService(bot) if bot is not None else None,
        )
        logger.info(
            f"Services initialized ({config.network_mode}): "
            f"chains={sorted(container.evm_clients) + ['solana']}, "
            f"swaps={'on' if cdp else 'off'}, offramp={'on' if paycrest else 'off'}, "
            f"llm={'gemini' if llm else 'rules'}"
        )
        return container

    # ------------------------------------------------------------------
    # Per-session factories
    # ------------------------------------------------------------------

    def wallet_service(self, session: AsyncSession) -> WalletService:
        """Wallet resolver bound to a session."""
        return WalletService(session, self.privy)

    def dispatcher(self, session: AsyncSession) -> TransactionDispatcher:
        """Transaction dispatcher bound to a session."""
        return TransactionDispatcher(session, self.privy, self.formatter)

    def offramp_service(self, session: AsyncSession) -> OfframpService | None:
        """Off-ramp service bound to a session, None when Paycrest is off."""
        if self.paycrest is None:
            return None
        return OfframpService(session, self.paycrest, self.rate_cache)

    def document_service(self, session: AsyncSession) -> DocumentService:
        """Invoice and proposal service bound to a session."""
        return DocumentService(session, self.pdf_renderer)

    def conversation_service(self, session: AsyncSession) -> ConversationService:
        """Conversation service bound to a session."""
        return ConversationService(
            session,
            parser=self.intent_parser,
            wallet_service=self.wallet_service(session),
            dispatcher=self.dispatcher(session),
            balance_service=self.balance_service,
            offramp_service=self.offramp_service(session),
            cdp=self.cdp,
            document_service=self.document_service(session),
        )

    def deposit_service(self, session: AsyncSession) -> DepositNotificationService:
        """Custody webhook processor bound to a session."""
        return DepositNotificationService(session, self.notifier)

    def reconciler(self) -> TransactionReconciler:
        """Pending transaction reconciler (opens its own sessions)."""
        return TransactionReconciler(
            self.session_maker, self.evm_clients, self.solana, self.notifier
        )

    async def close(self) -> None:
        """Close HTTP sessions and RPC clients."""
        await self.privy.close()
        if self.cdp is not None:
            await self.cdp.close()
        if self.paycrest is not None:
            await self.paycrest.close()
        await self.rate_cache.close()
        await self.solana.close()
        for client in self.evm_clients.values():
            await client.provider.disconnect()
        logger.info("Service clients closed")
