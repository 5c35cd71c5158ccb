from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('vnpay/create', views.create_vnpay_payment, name='vnpay_create'),
    path('vnpay/return', views.vnpay_return, name='vnpay_return'),
    path('vnpay/ipn', views.vnpay_ipn, name='vnpay_ipn'),
    path('vnpay/status', views.get_payment_status, name='vnpay_status'),
]
