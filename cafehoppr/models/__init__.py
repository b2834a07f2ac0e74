from cafehoppr.models.locations import Location
from cafehoppr.models.cafes import Cafe, CafePhoto
from cafehoppr.models.reviews import Review
from cafehoppr.models.users import AdminUser
from cafehoppr.models.access import AccessCode, UpsertToken

__all__ = ["Location", "Cafe", "CafePhoto", "Review", "AdminUser", "AccessCode", "UpsertToken"]
