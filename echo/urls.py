"""
Echo - URL Configuration
"""

from django.urls import path
from . import views

app_name = 'echo'

urlpatterns = [
    # Quiet notes
    path('notes/', views.note_list, name='note_list'),
    path('notes/send/', views.note_send, name='note_send'),
    path('notes/<int:note_id>/read/', views.note_mark_read, name='note_mark_read'),
    path('notes/<int:note_id>/invite/', views.invite_create, name='invite_create'),

    # Response invites
    path('invites/', views.invite_list, name='invite_list'),
    path('invites/<int:invite_id>/accept/', views.invite_accept, name='invite_accept'),
    path('invites/<int:invite_id>/decline/', views.invite_decline, name='invite_decline'),

    # Limited chats
    path('chats/', views.chat_list, name='chat_list'),
    path('chats/<int:chat_id>/', views.chat_detail, name='chat_detail'),
    path('chats/<int:chat_id>/messages/', views.chat_send, name='chat_send'),
    path('chats/<int:chat_id>/read/', views.chat_mark_read, name='chat_mark_read'),

    # Completion
    path('chats/<int:chat_id>/complete/', views.chat_complete, name='chat_complete'),
    path('chats/<int:chat_id>/archive/', views.chat_archive, name='chat_archive'),
    path('chats/<int:chat_id>/rekindle/', views.chat_rekindle, name='chat_rekindle'),

    # Quota
    path('quota/', views.quota, name='quota'),
]
