from django.urls import path
from . import views

urlpatterns = [
    # Customer and guest endpoints
    path('', views.CreateOrderView.as_view(), name='create-order'),
    path('my-orders', views.GetMyOrderView.as_view(), name='my-orders'),
    path('track', views.TrackOrderView.as_view(), name='track-order'),
    path('validate-discount', views.ValidateDiscountView.as_view(), name='validate-discount'),
    path('<int:order_id>', views.GetOrderDetailView.as_view(), name='order-detail'),
    path('<int:order_id>/cancel', views.CancelOrderView.as_view(), name='cancel-order'),

    # Admin endpoints
    path('admin/all', views.AdminGetAllOrderView.as_view(), name='admin-all-orders'),
    path('admin/<int:order_id>/status', views.AdminUpdateOrderStatusView.as_view(), name='admin-update-status'),
]
