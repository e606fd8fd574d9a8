"""
Factory Boy factories for listings.
"""

from decimal import Decimal

import factory

from authentication.tests.factories import UserFactory
from listings.models import DeviceType, Listing, ListingStatus


class ListingFactory(factory.django.DjangoModelFactory):
    """Active iPhone listing at $200.00 owned by a fresh seller."""

    class Meta:
        model = Listing

    seller = factory.SubFactory(UserFactory)
    title = factory.Sequence(lambda n: f"iPhone 15 Pro #{n}")
    device_type = DeviceType.IPHONE
    price = Decimal("200.00")
    status = ListingStatus.ACTIVE
