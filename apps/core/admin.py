"""
Django admin configuration for core app.
"""
from django.contrib import admin

admin.site.site_header = "Formation Platform Administration"
admin.site.site_title = "Formation Platform Admin"
admin.site.index_title = "Platform administration"
