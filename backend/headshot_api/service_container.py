from __future__ import annotations

from headshot_api.services.checkout_service import CheckoutService
from headshot_api.services.credit_ledger_service import CreditLedgerService
from headshot_api.services.generation_service import GenerationService
from headshot_api.services.image_generator import HttpImageGenerator, ImageGenerator
from headshot_api.services.payment_service import PaymentService
from headshot_api.services.user_service import UserService
from headshot_api.services.webhook_service import WebhookService
from headshot_common.core.config_service import ConfigService, config_service
from headshot_common.core.jwt_utils import JWTValidator
from headshot_common.core.lifecycle import Lifecycle
from headshot_common.utils.utils import cached_classmethod, get_logger
from headshot_db.crud.headshot import HeadshotDAO
from headshot_db.crud.payments import PurchaseDAO
from headshot_db.crud.reservation import CreditReservationDAO
from headshot_db.crud.user import UserDAO

logger = get_logger()


class Services(Lifecycle):
    config_service: ConfigService
    jwt_validator: JWTValidator

    user_dao: UserDAO
    purchase_dao: PurchaseDAO
    reservation_dao: CreditReservationDAO
    headshot_dao: HeadshotDAO

    ledger: CreditLedgerService
    user_service: UserService
    payment_service: PaymentService
    image_generator: ImageGenerator
    generation_service: GenerationService

    def __init__(self) -> None:
        super().__init__()

        # Initialize core infrastructure
        self.config_service = self._create_config_service()
        self.jwt_validator = self._create_jwt_validator(config_service=self.config_service)

        # Initialize database access objects
        self.user_dao = UserDAO()
        self.purchase_dao = PurchaseDAO()
        self.reservation_dao = CreditReservationDAO()
        self.headshot_dao = HeadshotDAO()

        # Credits and payments
        self.ledger = self._create_ledger(user_dao=self.user_dao, reservation_dao=self.reservation_dao)
        self.user_service = UserService(self.user_dao)
        self.payment_service = PaymentService(self.purchase_dao, self.ledger)

        # Generation
        self.image_generator = self._create_image_generator(config_service=self.config_service)
        self.generation_service = GenerationService(
            ledger=self.ledger,
            headshot_dao=self.headshot_dao,
            image_generator=self.image_generator,
            config=self.config_service.generation,
        )

        self._checkout_service: CheckoutService | None = None

    async def _start(self) -> None:
        if not self.config_service.stripe.api_key:
            logger.warning("Stripe is not configured; billing endpoints will fail")

    async def _stop(self) -> None:
        pass

    @property
    def checkout_service(self) -> CheckoutService:
        """Created on first use so the app can start without Stripe credentials."""
        if self._checkout_service is None:
            self._checkout_service = self._create_checkout_service(config_service=self.config_service, payment_service=self.payment_service)
        return self._checkout_service

    @property
    def webhook_service(self) -> WebhookService:
        return WebhookService(self.checkout_service, self.user_service)

    # Protected creation methods for dependency injection/overriding
    def _create_config_service(self) -> ConfigService:
        return config_service

    def _create_jwt_validator(self, config_service: ConfigService) -> JWTValidator:
        return JWTValidator(config_service.auth)

    def _create_ledger(self, user_dao: UserDAO, reservation_dao: CreditReservationDAO) -> CreditLedgerService:
        return CreditLedgerService(user_dao=user_dao, reservation_dao=reservation_dao)

    def _create_image_generator(self, config_service: ConfigService) -> ImageGenerator:
        return HttpImageGenerator(config_service.generation)

    def _create_checkout_service(self, config_service: ConfigService, payment_service: PaymentService) -> CheckoutService:
        return CheckoutService(config_service, payment_service)

    @cached_classmethod
    def instance(cls) -> Services:
        return Services()
