"""
URL configuration for task_scheduler project.
"""

from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # App URLs
    path('api/tasks/', include('apps.tasks.urls', namespace='tasks')),
]

# Admin site customization
admin.site.site_header = 'Task Scheduler Administration'
admin.site.site_title = 'Task Scheduler Admin'
admin.site.index_title = 'Welcome to Task Scheduler Admin'
