from django.urls import path

from slotting.api import api

urlpatterns = [
    path('api/v1/', api.urls),
]
