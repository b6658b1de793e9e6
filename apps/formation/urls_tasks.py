"""
Task and home dashboard API URLs.
"""
from django.urls import path
from apps.formation.views_tasks import (
    TaskListView,
    TaskDetailView,
    TaskCompleteView,
    HomeView,
)

app_name = 'tasks'

urlpatterns = [
    path('tasks', TaskListView.as_view(), name='list'),
    path('tasks/<uuid:task_id>', TaskDetailView.as_view(), name='detail'),
    path('tasks/<uuid:task_id>/complete', TaskCompleteView.as_view(), name='complete'),
    path('home', HomeView.as_view(), name='home'),
]
