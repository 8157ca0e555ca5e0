# Entity Models
from hotel_admin.models.entities import (
    RecordStatus, PropertyType, Chain, Area, Amenity,
    Hotel, HotelAmenity, Room, RoomPackage, ReviewAggregate, HotelFAQ
)

__all__ = [
    'RecordStatus', 'PropertyType', 'Chain', 'Area', 'Amenity',
    'Hotel', 'HotelAmenity', 'Room', 'RoomPackage', 'ReviewAggregate', 'HotelFAQ'
]
