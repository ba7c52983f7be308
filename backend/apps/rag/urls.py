"""
RAG URL routing.
"""
from django.urls import path

from apps.rag.views import ChatView, RetrieveView

urlpatterns = [
    path('chat', ChatView.as_view(), name='rag-chat'),
    path('rag/retrieve', RetrieveView.as_view(), name='rag-retrieve'),
]
