"""HTML fixtures shared by the unit tests."""

SIMPLE_LOGIN = """
<html><head><title>Sign in</title></head><body>
<form id="login-form" action="/session">
  <input type="text" id="username" name="username" placeholder="Username">
  <input type="password" id="password" name="password">
  <button type="submit" id="login-button">Log in</button>
</form>
</body></html>
"""

DOMAIN_LOGIN = """
<html><head><title>Corporate sign in</title></head><body>
<form id="login-form">
  <input type="text" id="username" name="username">
  <input type="password" id="password" name="password">
  <select id="domain" name="domain">
    <option value="corp">CORP.LOCAL</option>
    <option value="lab">LAB.LOCAL</option>
  </select>
  <button id="submit">Sign in</button>
</form>
</body></html>
"""

HONEYPOT_LOGIN = """
<html><head><title>Sign in</title></head><body>
<form id="login-form">
  <input type="email" id="email-trap" name="email" autocomplete="username" style="display: none">
  <input type="text" id="login" name="login" placeholder="Login" disabled>
  <input type="text" id="user" name="user" placeholder="Your user name">
  <input type="password" id="password" name="password">
  <button type="submit" id="submit">Sign in</button>
</form>
</body></html>
"""

USERNAME_STEP = """
<html><head><title>Sign in</title></head><body>
<form id="login-form">
  <input type="email" id="username" name="username" placeholder="Email address">
  <button type="button" id="next">Next</button>
</form>
</body></html>
"""

PASSWORD_STEP = '<input type="password" id="password" name="password">'

NO_FORM = """
<html><head><title>Welcome</title></head><body>
<h1>Public landing page</h1>
<p>Nothing to sign in to here.</p>
</body></html>
"""

DASHBOARD = """
<html><head><title>Dashboard</title></head><body>
<nav><a href="/logout">Sign out</a></nav>
<div class="dashboard"><h1>Welcome back</h1></div>
</body></html>
"""

INVALID_CREDENTIALS = """
<html><head><title>Sign in</title></head><body>
<p>Invalid credentials, please try again.</p>
<form id="login-form">
  <input type="text" id="username" name="username">
  <input type="password" id="password" name="password">
  <button type="submit" id="login-button">Log in</button>
</form>
</body></html>
"""
