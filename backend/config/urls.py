"""
URL configuration for the document Q&A backend.
"""
from django.urls import path, include

from apps.rag.health import health, readyz

urlpatterns = [
    # Health check endpoints (no auth)
    path('api/health', health, name='health'),
    path('readyz', readyz, name='readyz'),

    # API routes
    path('api/', include('apps.docs.urls')),
    path('api/', include('apps.rag.urls')),
]
