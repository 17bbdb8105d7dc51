"""
Inkwell URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Inkwell API Server',
        'version': '1.0',
        'endpoints': {
            'posts': '/api/posts/',
            'post': '/api/posts/<id>/',
            'user_posts': '/api/posts/user/<user_id>/',
            'post_like': '/api/posts/<id>/like/',
            'comments': '/api/comments/',
            'post_comments': '/api/comments/post/<post_id>/',
            'comment_like': '/api/comments/<id>/like/',
            'comment_replies': '/api/comments/<id>/replies/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('blog.urls')),
]
