from django.urls import path

from . import views

urlpatterns = [
    path("tasks/", views.TaskListView.as_view(), name="task-list"),
    path("tasks/<int:task_id>/", views.TaskDetailView.as_view(), name="task-detail"),
    path("tasks/<int:task_id>/subtasks/", views.SubTaskListView.as_view(), name="task-subtasks"),
    path("tasks/<int:task_id>/dependencies/", views.TaskDependencyListView.as_view(), name="task-dependencies"),
    path("dependencies/<int:dependency_id>/", views.DependencyDetailView.as_view(), name="dependency-detail"),
]
