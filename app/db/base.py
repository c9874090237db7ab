from app.db.session import Base
from app.models.user import User
from app.models.attraction import Attraction, AttractionSlot
from app.models.combo import Combo, ComboSlot
from app.models.addon import Addon
from app.models.offer import Offer, OfferRule
from app.models.dynamic_pricing import DynamicPricingRule
from app.models.coupon import Coupon
from app.models.holiday import Holiday
from app.models.order import Order
from app.models.booking import Booking, BookingAddon
from app.models.notification import Notification
