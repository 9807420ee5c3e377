"""
URL routing for activity log and dashboard endpoints.
"""
from django.urls import path
from . import views

app_name = 'core'

urlpatterns = [
    path('logs/', views.ActivityLogListView.as_view(), name='log-list'),
    path('dashboard/overview/', views.DashboardOverviewView.as_view(), name='dashboard-overview'),
    path('dashboard/jobs-by-month/', views.JobsByMonthView.as_view(), name='dashboard-jobs-by-month'),
    path('dashboard/low-stock/', views.LowStockDashboardView.as_view(), name='dashboard-low-stock'),
    path('dashboard/logs/', views.RecentLogsView.as_view(), name='dashboard-logs'),
]
