# Business Services
from hotel_admin.services.hotel_service import HotelService, HotelFilters
from hotel_admin.services.master_data_service import (
    PropertyTypeService, ChainService, AreaService, AmenityService,
    get_master_data_service
)
from hotel_admin.services.sync_service import (
    RoomSynchronizer, AmenitySynchronizer, ReviewAggregateSynchronizer,
    FAQSynchronizer, ImageUrlSynchronizer
)
from hotel_admin.services.result import ServiceResult

__all__ = [
    'HotelService', 'HotelFilters',
    'PropertyTypeService', 'ChainService', 'AreaService', 'AmenityService',
    'get_master_data_service',
    'RoomSynchronizer', 'AmenitySynchronizer', 'ReviewAggregateSynchronizer',
    'FAQSynchronizer', 'ImageUrlSynchronizer',
    'ServiceResult'
]
