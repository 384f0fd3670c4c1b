from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.forms import UserChangeForm, UserCreationForm
from .models import (
    CustomUser, Profile, UserRole, School, SchoolUser, SubscriptionPlan,
    Teacher, Student
)


class CustomUserCreationForm(UserCreationForm):
    class Meta(UserCreationForm.Meta):
        model = CustomUser
        fields = ('email',)


class CustomUserChangeForm(UserChangeForm):
    class Meta(UserChangeForm.Meta):
        model = CustomUser


class UserRoleInline(admin.TabularInline):
    model = UserRole
    extra = 0


@admin.register(CustomUser)
class CustomUserAdmin(BaseUserAdmin):
    add_form = CustomUserCreationForm
    form = CustomUserChangeForm
    list_display = ['email', 'full_name', 'username', 'phone', 'is_active', 'date_joined']
    list_filter = ['is_active', 'is_staff', 'roles__role']
    search_fields = ['email', 'full_name', 'username']
    ordering = ['email']
    inlines = [UserRoleInline]
    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Identity', {'fields': ('full_name', 'username', 'phone', 'metadata', 'email_confirmed')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2'),
        }),
    )


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'email', 'phone', 'created_at']
    search_fields = ['full_name', 'email', 'phone']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'subscription_plan', 'is_active', 'is_suspended', 'created_at']
    list_filter = ['subscription_plan', 'is_active', 'is_suspended']
    search_fields = ['name', 'code', 'email']
    readonly_fields = ['created_at', 'updated_at']
    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'name_bn', 'code', 'address', 'phone', 'email')
        }),
        ('Subscription', {
            'fields': ('subscription_plan', 'subscription_start', 'subscription_end')
        }),
        ('Status', {
            'fields': ('is_active', 'is_suspended', 'suspension_reason')
        }),
        ('Timestamps', {
            'fields': ('created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(SchoolUser)
class SchoolUserAdmin(admin.ModelAdmin):
    list_display = ['user', 'school', 'is_admin', 'created_at']
    list_filter = ['is_admin', 'school']
    search_fields = ['user__email', 'school__name', 'school__code']


@admin.register(SubscriptionPlan)
class SubscriptionPlanAdmin(admin.ModelAdmin):
    list_display = ['name', 'max_students', 'max_teachers', 'price_monthly', 'is_active']
    list_filter = ['is_active']


@admin.register(Teacher)
class TeacherAdmin(admin.ModelAdmin):
    list_display = ['employee_id', 'full_name', 'school', 'email', 'user']
    list_filter = ['school']
    search_fields = ['employee_id', 'full_name', 'email']


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['admission_id', 'full_name', 'class_name', 'school', 'user', 'parent']
    list_filter = ['school', 'class_name']
    search_fields = ['admission_id', 'full_name', 'email']
