"""AWS Lambda entry points for the HubSpot email sync webhook."""
