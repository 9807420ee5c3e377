"""
URL routing for authentication and account endpoints.
"""
from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from . import views

app_name = 'accounts'

urlpatterns = [
    # Authentication
    path('auth/login/', views.LoginView.as_view(), name='login'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('auth/me/', views.CurrentUserView.as_view(), name='me'),

    # Accounts
    path('users/', views.UserListCreateView.as_view(), name='user-list'),
    path('users/technicians/', views.TechnicianListView.as_view(), name='technician-list'),
    path('users/<int:pk>/', views.UserDetailView.as_view(), name='user-detail'),
]
