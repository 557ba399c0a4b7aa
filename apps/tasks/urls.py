"""
URL configuration for tasks app.

Includes:
- Task collection (list/create)
- Tasks due on a date
- Task detail (update/delete)
"""

from django.urls import path
from . import views

app_name = 'tasks'

urlpatterns = [
    path('', views.task_collection, name='task_collection'),
    path('by-date/', views.tasks_by_date, name='tasks_by_date'),
    path('<int:pk>/', views.task_detail, name='task_detail'),
]
