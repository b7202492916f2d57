"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py --debug run

Seed default email templates and settings:

    flask --app run.py seed-defaults

"""

from portal import create_app

# WSGI application object. `flask run` looks for this `app` variable to start the application.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only) - use `flask run` or a WSGI server otherwise.
    app.run(debug=True)
