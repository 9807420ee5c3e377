"""
URL routing for inventory API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    # Items
    path('inventory/', views.InventoryListCreateView.as_view(), name='item-list'),
    path('inventory/categories/', views.CategoryListView.as_view(), name='category-list'),
    path('inventory/low-stock/', views.LowStockView.as_view(), name='low-stock'),
    path('inventory/<int:pk>/', views.InventoryDetailView.as_view(), name='item-detail'),

    # Batches
    path('inventory/<int:pk>/batch/', views.BatchView.as_view(), name='batch'),
    path('inventory/<int:pk>/batch/<int:batch_id>/', views.BatchDetailView.as_view(), name='batch-detail'),
]
