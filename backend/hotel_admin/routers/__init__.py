# API Routers
from hotel_admin.routers import hotels, pricing

__all__ = ['hotels', 'pricing']
