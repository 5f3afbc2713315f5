"""
Resonance - Root URL Configuration
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('echo/', include('echo.urls')),
]
