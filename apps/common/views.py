from django.http import JsonResponse


# Error handlers
def custom_404(request, exception):
    """Custom 404 error handler"""
    return JsonResponse({"success": False, "message": "Route not found"}, status=404)


def custom_500(request):
    """Custom 500 error handler"""
    return JsonResponse({"success": False, "message": "Internal server error"}, status=500)


def custom_403(request, exception):
    """Custom 403 error handler"""
    return JsonResponse({"success": False, "message": "Forbidden"}, status=403)
