from django.urls import path
from .views import OrdersPingView
from .views import OrdersCollectionView, RetrieveOrderView, AttachmentUploadView
app_name = "orders"

urlpatterns = [
    path("orders/ping/", OrdersPingView.as_view(), name="ping"),
    path("orders/", OrdersCollectionView.as_view(), name="orders-collection"),  # GET list / POST create
    path("orders/<str:oid>/", RetrieveOrderView.as_view(), name="orders-detail"),
    path("uploads/", AttachmentUploadView.as_view(), name="uploads"),
]
