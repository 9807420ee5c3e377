"""
URL routing for job API endpoints.
"""
from django.urls import path
from . import views

app_name = 'jobs'

urlpatterns = [
    path('jobs/', views.JobListCreateView.as_view(), name='job-list'),
    path('jobs/<int:pk>/', views.JobDetailView.as_view(), name='job-detail'),
    path('jobs/<int:pk>/status/', views.JobStatusView.as_view(), name='job-status'),
    path('jobs/<int:pk>/assign/', views.JobAssignView.as_view(), name='job-assign'),
]
