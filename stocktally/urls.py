from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # REST API (v1, schema and docs)
    path('api/', include('apps.api.urls')),
]
