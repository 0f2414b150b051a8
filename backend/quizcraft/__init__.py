"""Application package for the Quiz Craft exam backend.

Tutors author exams and share them through a link; students submit
answers without an account and objective questions are graded on
submission. The package exposes the service, repository and model
modules used by the FastAPI application in `quizcraft.main`.
"""
