import django_filters as filters

from payments.models import Transaction


class TransactionFilter(filters.FilterSet):
    """
    Query filters for the caller's transaction history.

    The viewset already limits the queryset to transactions the caller
    is a party to; ``role`` narrows that to one side.
    """

    role = filters.ChoiceFilter(
        choices=[("buyer", "buyer"), ("seller", "seller")],
        method="filter_role",
    )
    status = filters.CharFilter(method="filter_status")
    created_after = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Transaction
        fields = ["role", "status", "dispute_status", "created_after", "created_before"]

    def filter_role(self, queryset, name, value):
        user = self.request.user
        if value == "buyer":
            return queryset.filter(buyer=user)
        return queryset.filter(seller=user)

    def filter_status(self, queryset, name, value):
        return queryset.filter(status=value.upper())
